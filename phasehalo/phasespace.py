"""Helpers for phase-space halo finding: radius selection and halo splitting."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, MutableSequence, Optional, Sequence, Tuple

from phasehalo.fof import partition_sort_particles


@dataclass
class HaloSummary:
    """Phase-space position and size estimates of a candidate halo."""

    pos: Sequence[float] = field(default_factory=lambda: [0.0] * 6)
    r: float = 0.0
    vrms: float = 0.0
    min_pos_err: float = 0.0
    min_vel_err: float = 0.0
    p_start: int = 0
    num_p: int = 0


def _rad_partition(rad: MutableSequence[float], left: int, right: int, pivot_ind: int) -> int:
    pivot = rad[pivot_ind]
    rad[pivot_ind], rad[right - 1] = rad[right - 1], rad[pivot_ind]
    si = right - 2
    i = left
    while i < si:
        if rad[i] > pivot:
            rad[i], rad[si] = rad[si], rad[i]
            si -= 1
        else:
            i += 1
    if rad[si] < pivot:
        si += 1
    rad[right - 1], rad[si] = rad[si], rad[right - 1]
    return si


def find_median_r(
    rad: MutableSequence[float], frac: float, rng: Optional[random.Random] = None
) -> float:
    """Value at rank ``int(len(rad) * frac)`` of ``rad``, found by quickselect.

    ``rad`` is reordered in place.
    """
    num_p = len(rad)
    if num_p == 0:
        raise ValueError("rad must not be empty")
    k = int(num_p * frac)
    if not 0 <= k < num_p:
        raise ValueError(f"fraction {frac!r} selects no element")
    if num_p < 2:
        return rad[0]
    rng = rng if rng is not None else random.Random()
    left, right = 0, num_p
    while True:
        if right - left <= 1:
            return rad[k]
        pivot_index = _rad_partition(rad, left, right, left + int(rng.random() * (right - left)))
        if k == pivot_index or rad[left] == rad[right - 1]:
            return rad[k]
        if k < pivot_index:
            right = pivot_index
        else:
            left = pivot_index + 1


def could_be_poisson_or_force_res(
    h1: HaloSummary, h2: HaloSummary, force_res: float
) -> Tuple[bool, bool]:
    """Whether ``h1`` may be noise around ``h2``.

    Returns ``(possible, is_force_res)``; the second is True when the two
    overlap within the force resolution.
    """
    if not h1.min_pos_err or not h1.min_vel_err:
        return True, False
    r = sum((h1.pos[k] - h2.pos[k]) ** 2 for k in range(3))
    v = sum((h1.pos[k + 3] - h2.pos[k + 3]) ** 2 for k in range(3))
    dx = (r / h1.min_pos_err + v / h1.min_vel_err) / 2.0
    if not dx > 100:
        return True, False
    r = math.sqrt(r)
    v = math.sqrt(v)
    if h1.r + h2.r > r and 1.5 * (h1.vrms + h2.vrms) > v and r < 1.5 * force_res:
        return True, True
    return False, False


def reassign_halo_particles(
    assignments: MutableSequence[int], start: int, end: int
) -> Tuple[List[int], Dict[int, Tuple[int, int]]]:
    """Sort ``assignments[start:end]`` by halo and locate each halo's run.

    Returns the original indices in their new order and a mapping from
    halo to ``(p_start, num_p)``.
    """
    if end <= start:
        raise ValueError("the particle range is empty")
    order = list(range(len(assignments)))
    partition_sort_particles(order, assignments, start, end)
    spans: Dict[int, Tuple[int, int]] = {}
    last = assignments[start]
    run_start = start
    for j in range(start + 1, end):
        if assignments[j] == last:
            continue
        spans[last] = (run_start, j - run_start)
        last = assignments[j]
        run_start = j
    spans[last] = (run_start, end - run_start)
    return order[start:end], spans