import pytest
from hypothesis import given, settings, strategies as st

from phasehalo.inthash import INT64_MIN, SKIP, IntHash, NestedIntHash


def test_set_and_get():
    ih = IntHash(seed=1)
    ih.set(10, "a")
    ih.set(-5, "b")
    assert ih.get(10) == "a"
    assert ih.get(-5) == "b"
    assert ih.get(11, "missing") == "missing"
    assert len(ih) == 2


def test_overwrite_keeps_count():
    ih = IntHash(seed=2)
    ih.set(3, "x")
    ih.set(3, "y")
    assert ih.get(3) == "y"
    assert len(ih) == 1


def test_delete_and_reinsert():
    ih = IntHash(seed=3)
    ih.set(7, 1)
    ih.delete(7)
    assert 7 not in ih
    assert ih.get(7) is None
    assert len(ih) == 0
    ih.set(7, 2)
    assert ih.get(7) == 2
    assert len(ih) == 1


def test_delete_missing_is_ignored():
    ih = IntHash(seed=4)
    ih.set(1, "one")
    ih.delete(2)
    assert ih.keys() == [1]


def test_growth_keeps_all_entries():
    ih = IntHash(seed=5)
    initial = ih.num_buckets
    for k in range(2000):
        ih.set(k * 7919, k)
    assert ih.num_buckets > initial
    assert len(ih) == 2000
    assert all(ih.get(k * 7919) == k for k in range(2000))
    assert sorted(ih.keys()) == sorted(k * 7919 for k in range(2000))


def test_prealloc_grows_and_preserves():
    ih = IntHash(seed=6)
    ih.set(42, "v")
    before = ih.num_buckets
    ih.prealloc(10000)
    assert ih.num_buckets > before
    assert ih.num_buckets * 0.7 >= 10000
    assert ih.get(42) == "v"


def test_prealloc_nonpositive_is_noop():
    ih = IntHash(seed=6)
    before = ih.num_buckets
    ih.prealloc(0)
    assert ih.num_buckets == before


def test_extreme_keys():
    ih = IntHash(seed=7)
    ih.set(INT64_MIN, "low")
    ih.set(SKIP, "high")
    assert ih.get(INT64_MIN) == "low"
    assert ih.get(SKIP) == "high"


def test_reserved_keys_rejected():
    ih = IntHash(seed=8)
    with pytest.raises(ValueError):
        ih.set(SKIP + 1, "x")
    with pytest.raises(ValueError):
        ih.set(INT64_MIN - 1, "x")
    assert (SKIP + 1) not in ih


def test_same_seed_same_layout():
    a, b = IntHash(seed=99), IntHash(seed=99)
    for k in (5, 1 << 40, -17, 123456789):
        a.set(k, k)
        b.set(k, k)
    assert a.keys() == b.keys()


@settings(max_examples=60)
@given(
    st.lists(
        st.tuples(
            st.sampled_from(["set", "del"]),
            st.integers(min_value=INT64_MIN, max_value=SKIP),
            st.integers(),
        ),
        max_size=120,
    )
)
def test_matches_dict_model(ops):
    ih = IntHash(seed=11)
    model = {}
    for op, key, value in ops:
        if op == "set":
            ih.set(key, value)
            model[key] = value
        else:
            ih.delete(key)
            model.pop(key, None)
    assert len(ih) == len(model)
    assert sorted(ih.keys()) == sorted(model)
    for key, value in model.items():
        assert ih.get(key) == value


def test_nested_hash():
    nh = NestedIntHash(seed=12)
    nh.set(1, 2, "a")
    nh.set(1, 3, "b")
    nh.set(4, 2, "c")
    assert nh.get(1, 2) == "a"
    assert nh.get(1, 3) == "b"
    assert nh.get(4, 2) == "c"
    assert nh.get(4, 3, "none") == "none"
    assert nh.get(9, 9) is None