"""Linking boundary groups of particles across the chunks of a divided volume.

Each chunk finds friends-of-friends groups in its own region. Particles near
a chunk's edge are shared, and groups from different chunks whose boundary
particles lie within a linking length of each other are chained together.
Every chain's head is the member with the lowest chunk number, so that the
lowest chunk takes charge of the combined group.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree


@dataclass
class BParticle:
    """A particle near a chunk boundary, tagged with its group and chunk."""

    id: int
    pos: Sequence[float] = field(default_factory=lambda: (0.0,) * 6)
    bgid: int = 0
    chunk: int = 0


@dataclass
class BGroup:
    """A group in one chunk, linked into a chain of groups from other chunks."""

    id: int
    chunk: int
    num_p: int = 0
    tagged: int = -1
    next: int = -1
    head: int = -1


def check_bgroup_sanity(set_sizes: Sequence[int], groups: Sequence[BGroup]) -> None:
    """Raise ValueError unless every set holds a group that ends a chain."""
    start = 0
    for size in set_sizes:
        end = start + size
        if not any(g.next == -1 for g in groups[start:end]):
            raise ValueError("Bgroup sanity test failed!")
        start = end


def prune_setlist(
    set_sizes: Sequence[int], groups: Sequence[BGroup], min_halo_particles: int
) -> Tuple[List[int], List[BGroup]]:
    """Drop sets whose groups hold fewer than ``min_halo_particles`` in total."""
    kept_sizes: List[int] = []
    kept_groups: List[BGroup] = []
    start = 0
    for size in set_sizes:
        members = groups[start:start + size]
        start += size
        if sum(g.num_p for g in members) < min_halo_particles:
            continue
        kept_sizes.append(size)
        kept_groups.extend(members)
    return kept_sizes, kept_groups


def calc_next_bgroup_chunk(
    set_sizes: Sequence[int], groups: Sequence[BGroup], num_writers: int
) -> Optional[int]:
    """Chunk owning the most groups whose particles are still missing.

    Returns None when no group lacks particles.
    """
    counts = [0] * num_writers
    total = sum(set_sizes)
    for g in groups[:total]:
        if not 0 <= g.chunk < num_writers:
            raise ValueError(f"group chunk {g.chunk} outside 0..{num_writers - 1}")
        if not g.num_p:
            counts[g.chunk] += 1
    if not counts:
        return None
    best = 0
    for i, n in enumerate(counts):
        if n > counts[best]:
            best = i
    return best if counts[best] else None


class BoundaryGroups:
    """Boundary particles of one chunk and the group chains built from them.

    ``fof_sizes[bgid]`` is the particle count of this chunk's group ``bgid``.
    """

    def __init__(self, our_chunk: int, fof_sizes: Sequence[int]) -> None:
        self.our_chunk = our_chunk
        self.fof_sizes = fof_sizes
        self.particles: List[BParticle] = []
        self.new_particles: List[BParticle] = []
        self.groups: List[BGroup] = []
        self.max_gid = 0
        self._index: Dict[Tuple[int, int], int] = {}

    # -- particles ---------------------------------------------------------

    def _all_particles(self) -> Iterator[BParticle]:
        yield from self.particles
        yield from self.new_particles

    def set_bp_chunk(self, chunk: int) -> None:
        """Make ``chunk`` this chunk and assign every stored particle to it."""
        self.our_chunk = chunk
        for bp in self._all_particles():
            bp.chunk = chunk

    def add_particles(self, particles, new: bool = False) -> None:
        """Store boundary particles; ``new`` marks ones received from other chunks."""
        (self.new_particles if new else self.particles).extend(particles)

    # -- groups ------------------------------------------------------------

    def _add_group(self, bp: BParticle) -> int:
        gid = len(self.groups)
        num_p = 0
        if bp.chunk == self.our_chunk:
            num_p = self.fof_sizes[bp.bgid]
            if not num_p:
                raise ValueError(f"group {bp.bgid} of chunk {bp.chunk} has no particles")
        self.groups.append(BGroup(id=bp.bgid, chunk=bp.chunk, num_p=num_p, head=gid))
        self._index[(bp.chunk, bp.bgid)] = gid
        return gid

    def find_bgroup(self, bp: BParticle) -> Optional[int]:
        """Index of the group that ``bp`` belongs to, or None."""
        return self._index.get((bp.chunk, bp.bgid))

    def _lookup(self, group_id: int, chunk: int) -> Optional[int]:
        if group_id >= self.max_gid:
            return None
        return self._index.get((chunk, group_id))

    def find_bgroup_from_id(self, group_id: int, chunk: int) -> Optional[BGroup]:
        """The known group ``group_id`` of ``chunk``, or None."""
        gid = self._lookup(group_id, chunk)
        return None if gid is None else self.groups[gid]

    def _chain(self, head: int) -> Iterator[int]:
        gid = head
        while gid > -1:
            yield gid
            gid = self.groups[gid].next

    def link_bgroups(self, gid1: int, gid2: int) -> None:
        """Merge the chains holding two groups, keeping the lowest-chunk head."""
        bg = self.groups
        if gid1 == gid2 or bg[gid1].head == bg[gid2].head:
            return
        if bg[bg[gid1].head].chunk > bg[bg[gid2].head].chunk:
            gid1, gid2 = gid2, gid1
        gid2 = bg[gid2].head
        tail = gid1
        while bg[tail].next > -1:
            tail = bg[tail].next
        bg[tail].next = gid2
        head = bg[gid1].head
        for gid in self._chain(gid2):
            bg[gid].head = head

    def build_bgroup_links(
        self, linking_length: float, periodic: bool = False, box_size: float = 0.0
    ) -> None:
        """Create a group per (chunk, bgid) and link groups whose particles touch.

        Each of this chunk's particles is linked with every received particle
        within ``linking_length``; distances wrap at ``box_size`` if
        ``periodic``.
        """
        if periodic and box_size <= 0:
            raise ValueError("box_size must be positive for periodic linking")
        self.groups = []
        self._index = {}
        all_bp = list(self._all_particles())
        self.max_gid = max((bp.bgid for bp in all_bp), default=-1) + 1
        for bp in all_bp:
            if (bp.chunk, bp.bgid) not in self._index:
                self._add_group(bp)

        if not self.particles or not self.new_particles:
            return
        own = np.array([bp.pos[:3] for bp in self.particles], dtype=float)
        new = np.array([bp.pos[:3] for bp in self.new_particles], dtype=float)
        if periodic:
            own = np.mod(own, box_size)
            new = np.mod(new, box_size)
            own[own >= box_size] = 0.0
            new[new >= box_size] = 0.0
            tree = cKDTree(new, boxsize=box_size)
        else:
            tree = cKDTree(new)
        neighbours = tree.query_ball_point(own, linking_length)
        for bp, hits in zip(self.particles, neighbours):
            gid1 = self.find_bgroup(bp)
            for j in hits:
                gid2 = self.find_bgroup(self.new_particles[j])
                self.link_bgroups(gid1, gid2)

    # -- sets --------------------------------------------------------------

    def find_bgroup_sets(
        self, chunk: int, set_sizes: Sequence[int], groups: Sequence[BGroup]
    ) -> Tuple[List[int], List[BGroup]]:
        """Merge requested group sets with the chains known here.

        Sets whose chains are headed by a chunk below ``chunk`` are dropped;
        sets sharing a chain are combined. Returns the new set sizes and the
        groups of each set, one set after another.
        """
        groups = list(groups)
        num_sets = len(set_sizes)
        bg = self.groups
        new_sizes = [0] * num_sets
        num_new = [0] * num_sets

        def update_num_p(gid: int, request: BGroup) -> None:
            if request.num_p:
                if bg[gid].num_p and bg[gid].num_p != request.num_p:
                    raise ValueError(
                        f"group {request.id} of chunk {request.chunk} has conflicting sizes"
                    )
                bg[gid].num_p = request.num_p

        # Step 1: link together groups in the same request set.
        loc = 0
        for i, size in enumerate(set_sizes):
            if size <= 0:
                raise ValueError("every group set must hold at least one group")
            end = loc + size
            g1: Optional[int] = None
            j = loc
            while j < end:
                found = self._lookup(groups[j].id, groups[j].chunk)
                j += 1
                if found is None:
                    num_new[i] += 1
                    continue
                g1 = found
                update_num_p(g1, groups[j - 1])
                groups[j - 1], groups[loc] = groups[loc], groups[j - 1]
                bg[bg[g1].head].tagged = -1
                break
            while j < end:
                g2 = self._lookup(groups[j].id, groups[j].chunk)
                if g2 is None:
                    num_new[i] += 1
                else:
                    bg[bg[g2].head].tagged = -1
                    self.link_bgroups(g1, g2)
                    update_num_p(g2, groups[j])
                j += 1
            loc = end

        # Step 2a: tag chain heads to find sets that share a chain.
        j = 0
        for i, size in enumerate(set_sizes):
            g1 = self._lookup(groups[j].id, groups[j].chunk)
            j += size
            if g1 is None:
                new_sizes[i] = num_new[i]
                continue
            head = bg[g1].head
            if bg[head].chunk < chunk:
                for gid in self._chain(head):
                    if bg[gid].chunk != self.our_chunk:
                        bg[gid].num_p = 0
                continue
            if bg[head].tagged < 0:
                bg[head].tagged = i
                new_sizes[i] += num_new[i] + sum(1 for _ in self._chain(head))
            else:
                new_sizes[bg[head].tagged] += num_new[i]

        # Step 2b: build the new group list.
        index = []
        total = 0
        for size in new_sizes:
            index.append(total)
            total += size
        result: List[Optional[BGroup]] = [None] * total
        j = 0
        for i, size in enumerate(set_sizes):
            g1 = self._lookup(groups[j].id, groups[j].chunk)
            if g1 is None:
                result[index[i]:index[i] + size] = groups[j:j + size]
                j += size
                continue
            head = bg[g1].head
            if bg[head].chunk < chunk:
                j += size
                continue
            tagged = bg[head].tagged
            if not 0 <= tagged < num_sets:
                raise ValueError("group chain was never assigned to a set")
            if tagged == i:
                for gid in self._chain(head):
                    result[index[i]] = dataclasses.replace(bg[gid])
                    if bg[gid].chunk != self.our_chunk:
                        bg[gid].num_p = 0
                    index[i] += 1
            for request in groups[j:j + size]:
                if self._lookup(request.id, request.chunk) is None:
                    result[index[tagged]] = request
                    index[tagged] += 1
            j += size

        # Step 3: collapse empty sets.
        sizes = [s for s in new_sizes if s]
        final = [g for g in result if g is not None]
        check_bgroup_sanity(sizes, final)
        return sizes, final

    def bgroups_to_setlist(self, min_halo_particles: int) -> Tuple[List[int], List[BGroup]]:
        """Turn chains headed in this chunk into a set list, then forget them.

        Lone groups below ``min_halo_particles`` and chains headed by a lower
        chunk are left out.
        """
        sizes: List[int] = []
        final: List[BGroup] = []
        for i, g in enumerate(self.groups):
            if g.head != i:
                continue
            if g.next == -1 and g.num_p < min_halo_particles:
                continue
            if g.chunk < self.our_chunk:
                continue
            members = [self.groups[gid] for gid in self._chain(i)]
            final.extend(members)
            sizes.append(len(members))
        self.groups = []
        self._index = {}
        return sizes, final