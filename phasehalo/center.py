"""Centre finding and central densities of particle sets.

Each row of ``positions`` is ``x y z vx vy vz`` with positions in Mpc and
velocities in km/s.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence, Tuple

import numpy as np

log = logging.getLogger(__name__)

_RIN = 0.01
_SHRINK = 0.8
_CORE_PARTICLES = 200
_CORE_SHELLS = 20
_SHELL_EDGES = np.arange(1, _CORE_SHELLS + 1, dtype=float) ** 2


def _phase_space(positions) -> np.ndarray:
    pos = np.asarray(positions, dtype=float)
    if pos.size == 0:
        return pos.reshape(0, 6)
    if pos.ndim != 2 or pos.shape[1] < 6:
        raise ValueError("positions must have shape (n, 6)")
    return pos


def _point(center: Sequence[float]) -> np.ndarray:
    c = np.asarray(center, dtype=float).ravel()
    if c.size < 3:
        raise ValueError("center must hold at least three coordinates")
    return c[:3].copy()


def _inside(xyz: np.ndarray, c: np.ndarray, radius: float) -> np.ndarray:
    return ((xyz - c) ** 2).sum(axis=1) < radius * radius


def _mean(values: np.ndarray) -> np.ndarray:
    if len(values) == 0:
        return np.full(values.shape[1], np.nan)
    return values.mean(axis=0)


def getcenter(
    positions, center, rmax: float, dm_particle_mass: float
) -> Tuple[np.ndarray, float]:
    """Locate the density centre by shrinking spheres, then the core velocity.

    Starting from ``center`` the sphere radius begins at ``rmax`` and shrinks
    by a factor 0.8 while it exceeds 1 Mpc; each step recentres on the mean
    of the particles inside. The core radius is the first 1 kpc shell edge
    that encloses at least 200 particles (0.1 Mpc if none does). Returns the
    six phase-space coordinates of the centre and the core density.
    An empty sphere gives NaN coordinates.
    """
    pos = _phase_space(positions)
    xyz = pos[:, :3]
    c = _point(center)

    rden = float(rmax)
    last_radius = rden
    while rden > 100 * _RIN:
        c = _mean(xyz[_inside(xyz, c, rden)])
        last_radius = rden
        rden *= _SHRINK
    log.debug("mass centre inside rcut=%f: x=%f y=%f z=%f", last_radius, *c)

    with np.errstate(invalid="ignore"):
        r2 = ((xyz - c) ** 2).sum(axis=1) * 1e6
    shell = np.searchsorted(_SHELL_EDGES, r2, side="right")
    counts = np.bincount(shell[shell < _CORE_SHELLS], minlength=_CORE_SHELLS)

    rmin = 0.1
    nmin = 0
    for i, n in enumerate(counts):
        if nmin < _CORE_PARTICLES:
            nmin += int(n)
        else:
            rmin = 0.001 * (i + 1)
            break
    log.debug("core velocity and density inside rcore=%f, np=%d", rmin, nmin)

    inside = _inside(xyz, c, rmin)
    npart = int(inside.sum())
    velocity = _mean(pos[inside, 3:6])
    rho0 = dm_particle_mass * npart / (4.0 / 3.0 * math.pi * rmin**3 * 1e18)
    log.debug("core velocity vx=%f vy=%f vz=%f", *velocity)
    return np.concatenate([c, velocity]), float(rho0)


def getrho(positions, center, rmax: float, particle_mass: float) -> float:
    """Mean density inside ``rmax / 1000`` of ``center``, in Gadget units."""
    if rmax <= 0:
        raise ValueError("rmax must be positive")
    pos = _phase_space(positions)
    c = _point(center)
    rmin = rmax * 0.001
    npart = int(_inside(pos[:, :3], c, rmin).sum())
    rho0 = particle_mass * npart / (4.0 / 3.0 * math.pi * rmin**3 * 1e9 * 1e10)
    log.info("density within r = %f kpc, np = %d", rmin * 1000, npart)
    return float(rho0)