import pytest

from cairn_api.bitmap import (
    heights_bitmap,
    height_at,
    is_valid_size,
    leaf_count,
    mmr_size,
    peak_heights,
    peak_positions,
    popcount,
)


def test_reference_vectors():
    assert heights_bitmap(1) == (0b1, 0)
    assert heights_bitmap(25) == (0b1110, 0)
    # 3 leaves: mountains of height 1 and 0
    assert heights_bitmap(4) == (0b11, 0)


@pytest.mark.parametrize(
    "size,bitmap",
    [
        (1, 1), (3, 2), (4, 3), (7, 4), (10, 6), (15, 8), (22, 12), (25, 14),
        (26, 15), (31, 16), (32, 17), (34, 18), (35, 19), (38, 20), (41, 22), (42, 23),
    ],
)
def test_bitmap_table(size, bitmap):
    assert heights_bitmap(size) == (bitmap, 0)


def test_empty_and_negative():
    assert heights_bitmap(0) == (0, 0)
    with pytest.raises(ValueError):
        heights_bitmap(-1)


def test_remainder_is_node_height():
    # positions of a 4-leaf mountain: leaves 0,1,3,4; nodes 2,5 at height 1; 6 at height 2
    assert [height_at(i) for i in range(7)] == [0, 0, 1, 0, 0, 1, 2]
    assert height_at(14) == 3
    assert heights_bitmap(2) == (1, 1)


def test_sizes_and_counts():
    for n in range(200):
        size = mmr_size(n)
        assert size == 2 * n - popcount(n)
        assert is_valid_size(size)
        assert leaf_count(size) == n
        assert len(peak_heights(size)) == popcount(n)
    assert not is_valid_size(2)
    assert not is_valid_size(5)
    with pytest.raises(ValueError):
        leaf_count(5)


def test_peak_layout():
    # 7 leaves -> 11 elements, peaks at 6, 9, 10
    assert peak_heights(11) == [2, 1, 0]
    assert peak_positions(11) == [6, 9, 10]
    assert peak_positions(0) == []
