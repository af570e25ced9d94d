"""Friends-of-friends grouping with union-find over particle links."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, MutableSequence, Sequence


@dataclass
class Fof:
    """A contiguous run of particles ``[start, start + num_p)``."""

    start: int
    num_p: int = 0

    @property
    def stop(self) -> int:
        return self.start + self.num_p


def partition_sort_particles(
    particles: MutableSequence, assignments: MutableSequence[int], start: int, end: int
) -> None:
    """Reorder ``particles[start:end]`` so their assignments ascend.

    Both sequences are permuted together, in place, by recursive
    partitioning around the midpoint of the assignment range.
    """
    if end - start < 2:
        return
    segment = assignments[start:end]
    lo, hi = min(segment), max(segment)
    if lo == hi:
        return
    pivot = lo + (hi - lo) // 2
    si = end - 1
    i = start
    while i < si:
        if assignments[i] > pivot:
            particles[i], particles[si] = particles[si], particles[i]
            assignments[i], assignments[si] = assignments[si], assignments[i]
            si -= 1
        else:
            i += 1
    if i == si and assignments[si] <= pivot:
        si += 1
    partition_sort_particles(particles, assignments, start, si)
    partition_sort_particles(particles, assignments, si, end)


class FofLinker:
    """Collects particle links into groups and builds FOF runs from them.

    Particles are referred to by index in ``range(num_particles)``.
    Boundary groups created by :meth:`tag_boundary_particle` are kept
    whatever their size.
    """

    def __init__(self, num_particles: int, min_halo_particles: int) -> None:
        if num_particles < 0:
            raise ValueError("num_particles must be non-negative")
        self.num_particles = num_particles
        self.min_halo_particles = min_halo_particles
        self._assignments: List[int] = [-1] * num_particles
        self._roots: List[int] = []
        self.num_boundary_fofs = 0

    def _add_smallfof(self) -> int:
        self._roots.append(len(self._roots))
        return len(self._roots) - 1

    def _collapse(self, f: int) -> None:
        roots = self._roots
        r = roots[f]
        if roots[r] == r:
            return
        while roots[r] != r:
            r = roots[r]
        while f != r:
            nxt = roots[f]
            roots[f] = r
            f = nxt

    def _merge(self, f1: int, f2: int) -> None:
        roots = self._roots
        if roots[f2] == roots[f1]:
            return
        self._collapse(f1)
        if f2 == roots[f2]:
            roots[f2] = roots[f1]
            return
        f1root = roots[f1]
        r = -1
        while r != f1root:
            r = roots[f2]
            roots[f2] = f1root
            f2 = r

    def tag_boundary_particle(self, p: int) -> int:
        """Mark the group of particle ``p`` as a boundary group; return its index."""
        f = self._assignments[p]
        if f < 0:
            self._assignments[p] = self._add_smallfof()
            self.num_boundary_fofs += 1
            return self.num_boundary_fofs - 1
        self._collapse(f)
        threshold = len(self._roots) - self.num_boundary_fofs
        root = self._roots[f]
        if root >= threshold:
            return root - threshold
        new_fof = self._add_smallfof()
        self._roots[root] = new_fof
        self.num_boundary_fofs += 1
        return self.num_boundary_fofs - 1

    def link_particle_to_fof(self, p: int, links: Sequence[int]) -> None:
        """Join particle ``p`` and all ``links`` into one group."""
        if len(links) < 2:
            return
        assignments = self._assignments
        f = assignments[p]
        if f < 0:
            f = next((assignments[q] for q in links if assignments[q] != -1), -1)
            if f < 0:
                f = self._add_smallfof()
        for q in links:
            if assignments[q] == -1:
                assignments[q] = f
            else:
                self._merge(assignments[q], f)

    def link_fof_to_fof(self, p: int, links: Sequence[int]) -> None:
        """Merge the groups of already grouped ``links`` with that of ``p``."""
        assignments = self._assignments
        f = assignments[p]
        if len(links) < 2 or f < 0:
            return
        for q in links:
            g = assignments[q]
            if g == -1 or g == f:
                continue
            self._merge(g, f)

    def _collapse_all(self) -> None:
        for f in range(len(self._roots)):
            self._collapse(f)
        roots = self._roots
        self._assignments = [roots[a] if a >= 0 else a for a in self._assignments]

    def build(self, particles: MutableSequence) -> List[Fof]:
        """Sort ``particles`` by group in place and return the FOF runs.

        Groups smaller than ``min_halo_particles`` are dropped unless they
        are boundary groups.
        """
        if len(particles) != self.num_particles:
            raise ValueError(
                f"expected {self.num_particles} particles, got {len(particles)}"
            )
        self._collapse_all()
        assignments = self._assignments
        partition_sort_particles(particles, assignments, 0, self.num_particles)
        threshold = len(self._roots) - self.num_boundary_fofs
        fofs: List[Fof] = []
        current = None
        last_sf = -1
        sf = -1
        for i, sf_i in enumerate(assignments):
            if sf_i < 0:
                continue
            sf = sf_i
            if sf != last_sf:
                if current is not None:
                    current.num_p = i - current.start
                if (
                    current is None
                    or current.num_p >= self.min_halo_particles
                    or last_sf >= threshold
                ):
                    current = Fof(i)
                    fofs.append(current)
                else:
                    current.start = i
                last_sf = sf
        if current is not None:
            current.num_p = self.num_particles - current.start
            if current.num_p < self.min_halo_particles and sf < threshold:
                fofs.pop()
        self._roots = []
        self._assignments = [-1] * self.num_particles
        return fofs