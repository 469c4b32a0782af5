"""
Code-point interval sets used by the embedded grammar compiler.

A CharSet is an immutable, normalized tuple of inclusive (lo, hi) ranges over
[0, MAX_CODE_POINT]: sorted, non-overlapping and non-adjacent. Normalization makes
equality structural, which keeps NFA/DFA construction deterministic.

Notes:
    - Zero-IO, stdlib only.
    - partition() splits a collection of sets into the coarsest disjoint intervals
      such that every input set is a union of them; subset construction runs over
      those intervals instead of individual code points.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .constants import MAX_CODE_POINT

__all__ = ["CharSet", "partition"]


def _normalize(ranges: Iterable[tuple[int, int]]) -> tuple[tuple[int, int], ...]:
    out: list[tuple[int, int]] = []
    for lo, hi in sorted(ranges):
        if lo > hi:
            lo, hi = hi, lo
        if out and lo <= out[-1][1] + 1:
            if hi > out[-1][1]:
                out[-1] = (out[-1][0], hi)
        else:
            out.append((lo, hi))
    return tuple(out)


@dataclass(frozen=True, slots=True)
class CharSet:
    """
    Immutable set of code points stored as normalized inclusive ranges.

    Examples:
        >>> CharSet.of_ranges([(ord("a"), ord("c")), (ord("b"), ord("e"))]).ranges
        ((97, 101),)
        >>> CharSet.of_char("x").negate().contains(ord("x"))
        False
    """

    ranges: tuple[tuple[int, int], ...]

    @classmethod
    def of_ranges(cls, ranges: Iterable[tuple[int, int]]) -> CharSet:
        return cls(_normalize(ranges))

    @classmethod
    def of_char(cls, ch: str | int) -> CharSet:
        cp = ord(ch) if isinstance(ch, str) else ch
        return cls(((cp, cp),))

    @classmethod
    def full(cls) -> CharSet:
        return cls(((0, MAX_CODE_POINT),))

    @classmethod
    def empty(cls) -> CharSet:
        return cls(())

    def is_empty(self) -> bool:
        return not self.ranges

    def union(self, other: CharSet) -> CharSet:
        return CharSet(_normalize(self.ranges + other.ranges))

    def negate(self) -> CharSet:
        """Complement with respect to [0, MAX_CODE_POINT]."""
        out: list[tuple[int, int]] = []
        nxt = 0
        for lo, hi in self.ranges:
            if lo > nxt:
                out.append((nxt, lo - 1))
            nxt = hi + 1
        if nxt <= MAX_CODE_POINT:
            out.append((nxt, MAX_CODE_POINT))
        return CharSet(tuple(out))

    def contains(self, cp: int) -> bool:
        return any(lo <= cp <= hi for lo, hi in self.ranges)

    def single(self) -> int | None:
        """The only code point in the set, or None."""
        if len(self.ranges) == 1 and self.ranges[0][0] == self.ranges[0][1]:
            return self.ranges[0][0]
        return None


def partition(sets: Iterable[CharSet]) -> list[tuple[int, int]]:
    """
    Split the union of sets into disjoint intervals that never straddle a set boundary.

    Args:
        sets (Iterable[CharSet]): Edge labels collected from an NFA.

    Returns:
        list[tuple[int, int]]: Sorted inclusive intervals; each input set is exactly a
        union of some of them.

    Examples:
        >>> a = CharSet.of_ranges([(0, 9)])
        >>> b = CharSet.of_ranges([(5, 14)])
        >>> partition([a, b])
        [(0, 4), (5, 9), (10, 14)]
    """
    starts: set[int] = set()
    covered: list[tuple[int, int]] = []
    for cs in sets:
        for lo, hi in cs.ranges:
            starts.add(lo)
            starts.add(hi + 1)
            covered.append((lo, hi))
    if not covered:
        return []
    union = _normalize(covered)
    bounds = sorted(starts)
    out: list[tuple[int, int]] = []
    for lo, nxt in zip(bounds, bounds[1:]):
        hi = nxt - 1
        # keep only pieces inside the union (gaps between sets are dropped)
        if any(ulo <= lo and hi <= uhi for ulo, uhi in union):
            out.append((lo, hi))
    return out
