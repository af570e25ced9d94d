import pytest

from phasehalo.bgroups import (
    BGroup,
    BParticle,
    BoundaryGroups,
    calc_next_bgroup_chunk,
    check_bgroup_sanity,
    prune_setlist,
)


def _scenario():
    bgs = BoundaryGroups(0, [50, 30])
    bgs.add_particles(
        [
            BParticle(1, (1.0, 1.0, 1.0, 0, 0, 0), bgid=0, chunk=0),
            BParticle(2, (5.0, 5.0, 5.0, 0, 0, 0), bgid=1, chunk=0),
        ]
    )
    bgs.add_particles(
        [
            BParticle(3, (1.1, 1.0, 1.0, 0, 0, 0), bgid=0, chunk=1),
            BParticle(4, (9.0, 9.0, 9.0, 0, 0, 0), bgid=2, chunk=1),
        ],
        new=True,
    )
    bgs.build_bgroup_links(0.5)
    return bgs


def test_build_creates_one_group_per_chunk_and_id():
    bgs = _scenario()
    keys = [(g.chunk, g.id) for g in bgs.groups]
    assert keys == [(0, 0), (0, 1), (1, 0), (1, 2)]
    assert [g.num_p for g in bgs.groups] == [50, 30, 0, 0]
    assert bgs.max_gid == 3


def test_close_particles_link_groups():
    bgs = _scenario()
    assert bgs.groups[2].head == 0
    assert bgs.groups[0].next == 2
    assert bgs.groups[1].head == 1
    assert bgs.groups[3].head == 3


def test_find_bgroup_and_from_id():
    bgs = _scenario()
    assert bgs.find_bgroup(bgs.new_particles[0]) == 2
    g = bgs.find_bgroup_from_id(2, 1)
    assert (g.chunk, g.id) == (1, 2)
    assert bgs.find_bgroup_from_id(1, 1) is None
    assert bgs.find_bgroup_from_id(7, 0) is None


def test_periodic_linking_wraps_box():
    def make(periodic):
        bgs = BoundaryGroups(0, [10])
        bgs.add_particles([BParticle(1, (0.1, 5.0, 5.0, 0, 0, 0), bgid=0, chunk=0)])
        bgs.add_particles([BParticle(2, (9.95, 5.0, 5.0, 0, 0, 0), bgid=0, chunk=1)], new=True)
        bgs.build_bgroup_links(0.5, periodic=periodic, box_size=10.0)
        return bgs

    assert make(True).groups[1].head == 0
    assert make(False).groups[1].head == 1


def test_head_is_lowest_chunk():
    bgs = BoundaryGroups(1, [20])
    bgs.add_particles([BParticle(1, (1.0, 1.0, 1.0, 0, 0, 0), bgid=0, chunk=1)])
    bgs.add_particles([BParticle(2, (1.0, 1.0, 1.2, 0, 0, 0), bgid=0, chunk=0)], new=True)
    bgs.build_bgroup_links(0.5)
    heads = {g.head for g in bgs.groups}
    assert len(heads) == 1
    assert bgs.groups[heads.pop()].chunk == 0


def test_own_group_without_particles_is_rejected():
    bgs = BoundaryGroups(0, [0])
    bgs.add_particles([BParticle(1, (1.0, 1.0, 1.0, 0, 0, 0), bgid=0, chunk=0)])
    with pytest.raises(ValueError):
        bgs.build_bgroup_links(0.5)


def test_set_bp_chunk_relabels_particles():
    bgs = BoundaryGroups(0, [5])
    bgs.add_particles([BParticle(1, bgid=0, chunk=9)])
    bgs.set_bp_chunk(4)
    assert bgs.our_chunk == 4
    assert bgs.particles[0].chunk == 4


def test_bgroups_to_setlist():
    bgs = _scenario()
    sizes, groups = bgs.bgroups_to_setlist(20)
    assert sizes == [2, 1]
    assert [(g.chunk, g.id) for g in groups] == [(0, 0), (1, 0), (0, 1)]
    assert bgs.groups == []


def test_find_bgroup_sets_merges_chain_and_new_groups():
    bgs = _scenario()
    request = [BGroup(id=0, chunk=1, num_p=40), BGroup(id=5, chunk=2, num_p=7)]
    sizes, groups = bgs.find_bgroup_sets(0, [2], request)
    assert sizes == [3]
    assert [(g.chunk, g.id) for g in groups] == [(0, 0), (1, 0), (2, 5)]
    assert [g.num_p for g in groups] == [50, 40, 7]
    assert bgs.find_bgroup_from_id(0, 1).num_p == 0


def test_find_bgroup_sets_drops_sets_headed_by_lower_chunk():
    bgs = _scenario()
    request = [BGroup(id=0, chunk=1, num_p=40)]
    sizes, groups = bgs.find_bgroup_sets(1, [1], request)
    assert sizes == []
    assert groups == []


def test_find_bgroup_sets_keeps_unknown_sets_whole():
    bgs = _scenario()
    request = [BGroup(id=0, chunk=3, num_p=4), BGroup(id=1, chunk=3, num_p=6)]
    sizes, groups = bgs.find_bgroup_sets(0, [2], request)
    assert sizes == [2]
    assert groups == request


def test_find_bgroup_sets_rejects_empty_set():
    bgs = _scenario()
    with pytest.raises(ValueError):
        bgs.find_bgroup_sets(0, [0], [])


def test_prune_setlist():
    groups = [BGroup(0, 0, num_p=10), BGroup(1, 1, num_p=5), BGroup(2, 2, num_p=3)]
    sizes, kept = prune_setlist([2, 1], groups, 12)
    assert sizes == [2]
    assert kept == groups[:2]


def test_calc_next_bgroup_chunk():
    groups = [BGroup(0, 1), BGroup(1, 2), BGroup(2, 2), BGroup(3, 0, num_p=8)]
    assert calc_next_bgroup_chunk([4], groups, 3) == 2
    full = [BGroup(0, 1, num_p=3)]
    assert calc_next_bgroup_chunk([1], full, 3) is None


def test_calc_next_bgroup_chunk_rejects_bad_chunk():
    with pytest.raises(ValueError):
        calc_next_bgroup_chunk([1], [BGroup(0, 5)], 3)


def test_sanity_check_fails_without_chain_end():
    groups = [BGroup(0, 0, next=-1), BGroup(1, 0, next=3), BGroup(2, 1, next=0)]
    with pytest.raises(ValueError):
        check_bgroup_sanity([1, 2], groups)