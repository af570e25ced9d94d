import pytest
from hypothesis import given, strategies as st

from phasehalo.fof import Fof, FofLinker, partition_sort_particles


def _groups(particles, fofs):
    return {frozenset(particles[f.start:f.stop]) for f in fofs}


def test_build_groups_linked_particles():
    linker = FofLinker(6, 2)
    linker.link_particle_to_fof(0, [0, 1, 2])
    linker.link_particle_to_fof(3, [3, 4])
    particles = list("abcdef")
    fofs = linker.build(particles)
    assert _groups(particles, fofs) == {frozenset("abc"), frozenset("de")}
    assert sorted(particles) == list("abcdef")


def test_small_trailing_group_dropped():
    linker = FofLinker(6, 3)
    linker.link_particle_to_fof(0, [0, 1, 2])
    linker.link_particle_to_fof(3, [3, 4])
    particles = list("abcdef")
    fofs = linker.build(particles)
    assert _groups(particles, fofs) == {frozenset("abc")}


def test_small_leading_group_slot_reused():
    linker = FofLinker(6, 3)
    linker.link_particle_to_fof(0, [0, 1])
    linker.link_particle_to_fof(2, [2, 3, 4])
    particles = list("abcdef")
    fofs = linker.build(particles)
    assert len(fofs) == 1
    assert _groups(particles, fofs) == {frozenset("cde")}


def test_merge_through_shared_particle():
    linker = FofLinker(5, 2)
    linker.link_particle_to_fof(0, [0, 1])
    linker.link_particle_to_fof(2, [2, 3])
    linker.link_particle_to_fof(1, [1, 2])
    particles = list("abcde")
    fofs = linker.build(particles)
    assert _groups(particles, fofs) == {frozenset("abcd")}


def test_link_fof_to_fof():
    linker = FofLinker(5, 2)
    linker.link_particle_to_fof(0, [0, 1])
    linker.link_particle_to_fof(2, [2, 3])
    linker.link_fof_to_fof(4, [4, 0])
    linker.link_fof_to_fof(1, [1, 2])
    particles = list("abcde")
    fofs = linker.build(particles)
    assert _groups(particles, fofs) == {frozenset("abcd")}


def test_single_link_is_ignored():
    linker = FofLinker(3, 1)
    linker.link_particle_to_fof(0, [0])
    particles = list("abc")
    assert linker.build(particles) == []


def test_boundary_groups_kept_and_numbered():
    linker = FofLinker(6, 10)
    linker.link_particle_to_fof(0, [0, 1, 2])
    t5 = linker.tag_boundary_particle(5)
    t0 = linker.tag_boundary_particle(0)
    t1 = linker.tag_boundary_particle(1)
    assert t0 == t1
    assert sorted({t5, t0}) == [0, 1]
    assert linker.num_boundary_fofs == 2
    particles = list("abcdef")
    fofs = linker.build(particles)
    assert _groups(particles, fofs) == {frozenset("f"), frozenset("abc")}


def test_wrong_particle_count_rejected():
    linker = FofLinker(4, 1)
    with pytest.raises(ValueError):
        linker.build(list("abc"))


def test_fof_stop():
    f = Fof(start=4, num_p=3)
    assert f.stop == f.start + f.num_p


@given(st.lists(st.integers(min_value=-1, max_value=30), max_size=60))
def test_partition_sort_orders_and_keeps_pairs(assignments):
    particles = list(range(len(assignments)))
    original = sorted(zip(assignments, particles))
    a = list(assignments)
    partition_sort_particles(particles, a, 0, len(a))
    assert a == sorted(a)
    assert sorted(zip(a, particles)) == original


def test_partition_sort_subrange_only():
    assignments = [9, 5, 3, 1, 0]
    particles = list("vwxyz")
    partition_sort_particles(particles, assignments, 1, 4)
    assert assignments[0] == 9 and assignments[4] == 0
    assert particles[0] == "v" and particles[4] == "z"
    assert assignments[1:4] == sorted(assignments[1:4])