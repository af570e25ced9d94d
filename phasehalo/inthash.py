"""Open-addressing hash table keyed by signed 64-bit integers."""

from __future__ import annotations

import math
import random
from typing import Any, Iterator, List, Optional

INT64_MAX = 2**63 - 1
INT64_MIN = -(2**63)

_INVALID = INT64_MAX
_DELETED = INT64_MAX - 1
SKIP = INT64_MAX - 2
"""Largest key the table accepts; larger values are reserved markers."""

_MASK = 2**64 - 1
_MAX_LOAD_FACTOR = 0.7
_INITIAL_WIDTH = 8


def _valid_key(key: Any) -> bool:
    return isinstance(key, int) and INT64_MIN <= key <= SKIP


class IntHash:
    """Hash table mapping 64-bit integer keys to arbitrary values.

    Buckets are addressed with a multiplicative hash whose multiplier is
    drawn from ``seed``; collisions are resolved with the probe sequence
    ``k -> k*k + k + 3`` (mod 2**64).
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        rng = random.Random(seed)
        self._hashnum = rng.getrandbits(64) | 1
        self._width = _INITIAL_WIDTH
        size = 1 << self._width
        self._keys: List[int] = [_INVALID] * size
        self._values: List[Any] = [None] * size
        self._elems = 0
        self._deleted = 0

    def _hash(self, key: int) -> int:
        return (((key & _MASK) * self._hashnum) & _MASK) >> (64 - self._width)

    def _probe(self, key: int) -> Iterator[int]:
        k2 = key & _MASK
        slot = self._hash(k2)
        while True:
            yield slot
            k2 = (k2 * k2 + k2 + 3) & _MASK
            slot = self._hash(k2)

    def _find(self, key: int) -> int:
        """Slot holding ``key``, or the first empty slot on its probe path."""
        for slot in self._probe(key):
            k = self._keys[slot]
            if k == key or k == _INVALID:
                return slot
        raise AssertionError("unreachable")

    def _find_for_insert(self, key: int) -> int:
        deleted_slot = None
        for slot in self._probe(key):
            k = self._keys[slot]
            if k == key:
                return slot
            if k == _INVALID:
                return slot if deleted_slot is None else deleted_slot
            if k == _DELETED:
                deleted_slot = slot
        raise AssertionError("unreachable")

    def _rebuild(self, add_factor: int) -> None:
        entries = [(k, v) for k, v in zip(self._keys, self._values) if k <= SKIP]
        self._width += add_factor
        size = 1 << self._width
        self._keys = [_INVALID] * size
        self._values = [None] * size
        self._deleted = 0
        for key, value in entries:
            slot = self._find(key)
            self._keys[slot] = key
            self._values[slot] = value

    def get(self, key: int, default: Any = None) -> Any:
        """Return the value stored under ``key``, or ``default``."""
        if not _valid_key(key):
            return default
        slot = self._find(key)
        if self._keys[slot] == key:
            return self._values[slot]
        return default

    def set(self, key: int, value: Any) -> None:
        """Store ``value`` under ``key``, growing the table when needed."""
        if not _valid_key(key):
            raise ValueError(f"key {key!r} is outside the range of usable int64 keys")
        slot = self._find_for_insert(key)
        if self._keys[slot] != key:
            limit = len(self._keys) * _MAX_LOAD_FACTOR
            if self._elems >= limit:
                self._rebuild(1)
                slot = self._find(key)
            elif self._elems + self._deleted >= limit:
                self._rebuild(0)
                slot = self._find(key)
            elif self._keys[slot] == _DELETED:
                self._deleted -= 1
            self._elems += 1
            self._keys[slot] = key
        self._values[slot] = value

    def delete(self, key: int) -> None:
        """Remove ``key`` if present; missing keys are ignored."""
        if not _valid_key(key):
            return
        slot = self._find(key)
        if self._keys[slot] != key:
            return
        self._keys[slot] = _DELETED
        self._values[slot] = None
        self._elems -= 1
        self._deleted += 1

    def keys(self) -> List[int]:
        """All stored keys, in bucket order."""
        return [k for k in self._keys if k <= SKIP]

    def prealloc(self, size: int) -> None:
        """Grow the bucket array so ``size`` entries fit under the load limit."""
        if size <= 0:
            return
        numbits = math.ceil(math.log(size / _MAX_LOAD_FACTOR) / math.log(2))
        if numbits <= self._width:
            return
        self._rebuild(numbits - self._width)

    @property
    def num_buckets(self) -> int:
        return len(self._keys)

    def __len__(self) -> int:
        return self._elems

    def __contains__(self, key: object) -> bool:
        if not _valid_key(key):
            return False
        return self._keys[self._find(key)] == key  # type: ignore[arg-type]


class NestedIntHash:
    """Two-level table addressed by a pair of 64-bit integer keys."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._outer = IntHash(self._rng.getrandbits(64))

    def set(self, key1: int, key2: int, value: Any) -> None:
        inner = self._outer.get(key1)
        if inner is None:
            inner = IntHash(self._rng.getrandbits(64))
            self._outer.set(key1, inner)
        inner.set(key2, value)

    def get(self, key1: int, key2: int, default: Any = None) -> Any:
        inner = self._outer.get(key1)
        if inner is None:
            return default
        return inner.get(key2, default)