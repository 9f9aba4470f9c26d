"""Peak bookkeeping arithmetic.

A valid MMR of ``n`` leaves holds one perfect mountain per set bit of ``n``.
A mountain of height ``h`` occupies ``2^(h+1) - 1`` flat positions, which in
binary is ``h + 1`` ones. Decomposing an element count greedily into those
sizes, largest first, therefore tells us which heights hold a peak.

    size 25 = 15 + 7 + 3  ->  bitmap 0b1110, remainder 0
"""
from __future__ import annotations
from typing import List, Tuple


def popcount(n: int) -> int:
    return bin(n).count("1")


def heights_bitmap(size: int) -> Tuple[int, int]:
    """Return ``(bitmap, remainder)`` for ``size`` flat elements.

    Bit ``h`` of ``bitmap`` is set when a peak of height ``h`` exists.
    ``remainder`` counts the elements left over once every complete mountain
    is taken out; it is zero for the size of any real accumulator, and for a
    position inside the structure it equals the height of the node there.
    """
    if size < 0:
        raise ValueError("size must be non-negative")
    if size == 0:
        return 0, 0
    # all ones over the bit length of size: the largest subtree that could fit
    subtree_size = (1 << size.bit_length()) - 1
    remaining = size
    bitmap = 0
    while subtree_size > 0:
        bitmap <<= 1
        if remaining >= subtree_size:
            bitmap |= 1
            remaining -= subtree_size
        subtree_size >>= 1
    return bitmap, remaining


def height_at(flat_index: int) -> int:
    """Height of the node stored at ``flat_index`` (0 for leaves)."""
    return heights_bitmap(flat_index)[1]


def is_valid_size(size: int) -> bool:
    return size >= 0 and heights_bitmap(size)[1] == 0


def mmr_size(leaf_count: int) -> int:
    """Element count after ``leaf_count`` insertions: ``2n - popcount(n)``."""
    if leaf_count < 0:
        raise ValueError("leaf_count must be non-negative")
    return 2 * leaf_count - popcount(leaf_count)


def leaf_count(size: int) -> int:
    bitmap, remainder = heights_bitmap(size)
    if remainder:
        raise ValueError(f"{size} is not a valid MMR size")
    # a peak at height h covers 2^h leaves, so the bitmap is the leaf count
    return bitmap


def peak_heights(size: int) -> List[int]:
    """Peak heights for a valid ``size``, tallest first."""
    bitmap = leaf_count(size)
    return [h for h in range(bitmap.bit_length() - 1, -1, -1) if bitmap >> h & 1]


def peak_positions(size: int) -> List[int]:
    """Flat indices of the peaks for a valid ``size``, tallest first."""
    positions = []
    offset = 0
    for h in peak_heights(size):
        offset += (1 << (h + 1)) - 1
        positions.append(offset - 1)
    return positions
