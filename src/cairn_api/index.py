"""Conversion between insertion order and flat positions.

Leaves are numbered 0, 1, 2, ... in the order they were added ("normal"
index). The accumulator stores them interleaved with merge nodes, so the
same leaf sits at a larger "flat" index:

    normal  0 1   2 3     4 5   6 7
    flat    0 1 2 3 4 5 6 7 8 9 10 11 ...
"""
from __future__ import annotations
from typing import Optional

from .errors import IndexMappingError


def to_flat_index(normal_index: int) -> int:
    """Flat position of the leaf inserted ``normal_index``-th.

    Every set bit ``h`` of the index stands for a completed mountain of height
    ``h`` to its left, i.e. ``2^(h+1) - 1`` stored elements.
    """
    if normal_index < 0:
        raise IndexMappingError(f"normal index must be non-negative, got {normal_index}")
    index = normal_index
    height = 1
    flat = 0
    while index > 0:
        if index & 1:
            flat += (1 << height) - 1
        height += 1
        index >>= 1
    return flat


def enclosing_mountain(flat_index: int) -> int:
    """Leaf count of the smallest perfect mountain containing ``flat_index``."""
    leaves = 1
    while 2 * leaves - 1 <= flat_index:
        leaves <<= 1
    return leaves


def _normal_in_mountain(flat_index: int, leaves: int) -> int:
    if leaves == 1:
        return 0
    if flat_index == 2 * leaves - 2:
        raise IndexMappingError("flat index addresses an internal node")
    # the left half mountain holds leaves - 1 elements
    half = leaves - 1
    if flat_index >= half:
        return leaves // 2 + _normal_in_mountain(flat_index - half, leaves // 2)
    return _normal_in_mountain(flat_index, leaves // 2)


def to_normal_index(flat_index: int, mountain_size: Optional[int] = None) -> int:
    """Inverse of :func:`to_flat_index`.

    ``mountain_size`` is the leaf count of the perfect mountain the flat index
    is relative to; it defaults to the smallest one that encloses it. Since an
    MMR is always a prefix of a large enough perfect tree, the default maps
    global flat indices back to global normal indices.
    """
    if flat_index < 0:
        raise IndexMappingError(f"flat index must be non-negative, got {flat_index}")
    if mountain_size is None:
        mountain_size = enclosing_mountain(flat_index)
    if mountain_size <= 0 or mountain_size & (mountain_size - 1):
        raise IndexMappingError(f"mountain size must be a power of two, got {mountain_size}")
    if flat_index >= 2 * mountain_size - 1:
        raise IndexMappingError(
            f"flat index {flat_index} outside mountain of {mountain_size} leaves"
        )
    try:
        return _normal_in_mountain(flat_index, mountain_size)
    except IndexMappingError:
        raise IndexMappingError(f"flat index {flat_index} is not a leaf") from None


class IndexMapper:
    """Namespace wrapper so the mapping can be injected or swapped."""

    to_flat_index = staticmethod(to_flat_index)
    to_normal_index = staticmethod(to_normal_index)
    enclosing_mountain = staticmethod(enclosing_mountain)
