"""Reference MMR that records every node's height explicitly.

Kept beside :class:`cairn_api.mmr.Accumulator` as an independent second
implementation: no bitmap arithmetic, just a parallel ``heights`` list and a
peak stack. The two must agree digest-for-digest; the test suite checks it.
"""
from __future__ import annotations
from typing import List, Optional, Tuple

from .errors import LeafNotFound
from .hashing import HashOracle, default_oracle
from .mmr import PathStep, ProofMaterial, bag


class HeightTrackingAccumulator:
    def __init__(self, oracle: Optional[HashOracle] = None):
        self.oracle = oracle if oracle is not None else default_oracle()
        self.elements: List[bytes] = []
        self.heights: List[int] = []
        self.peaks: List[bytes] = []
        self.leaf_count = 0
        self.max_height = 0

    @property
    def size(self) -> int:
        return len(self.elements)

    def __len__(self) -> int:
        return self.leaf_count

    def add_leaf(self, value: bytes) -> None:
        leaf = self.oracle.leaf_hash(value)
        self.elements.append(leaf)
        self.heights.append(0)
        self.peaks.append(leaf)
        self.leaf_count += 1
        # the new leaf completes a mountain of 2^h leaves for every h that
        # divides the leaf count
        h = 1
        while self.leaf_count % (1 << h) == 0:
            left = self.elements[len(self.elements) - 1 - ((1 << h) - 1)]
            node = self.oracle.merge(left, self.elements[-1])
            self.elements.append(node)
            self.heights.append(h)
            self.peaks.pop()
            self.peaks.pop()
            self.peaks.append(node)
            self.max_height = max(self.max_height, h)
            h += 1

    def get_peaks(self) -> List[bytes]:
        return list(self.peaks)

    def bag_peaks(self) -> bytes:
        return bag(self.peaks, self.oracle)

    def _subtree_of(self, flat_index: int) -> Tuple[int, int]:
        """(peak index, peak height) of the mountain holding ``flat_index``."""
        # mountains to the right are strictly shorter, so the tallest node
        # seen walking right is this mountain's peak
        best_height = self.heights[flat_index]
        best_index = flat_index
        for i in range(flat_index, len(self.elements)):
            if self.heights[i] > best_height:
                best_height = self.heights[i]
                best_index = i
                if best_height == self.max_height:
                    break
        return best_index, best_height

    def build(self, flat_index: int) -> ProofMaterial:
        if not 0 <= flat_index < len(self.elements) or self.heights[flat_index] != 0:
            raise LeafNotFound(f"flat index {flat_index} is not a leaf")
        peak_index, peak_height = self._subtree_of(flat_index)
        path: List[PathStep] = []
        current = flat_index
        for h in range(peak_height):
            diff = (1 << (h + 1)) - 1
            right = current + diff
            if right <= peak_index and self.heights[right] == h:
                path.append((self.elements[right], False))
                current = right + 1
            else:
                path.append((self.elements[current - diff], True))
                current += 1
        return ProofMaterial(len(self.elements), tuple(path), tuple(self.peaks))
