"""Merkle Mountain Range accumulator.

The log is a flat, append-only list of digests holding every leaf hash and
every merge node in creation order. Adding a leaf behaves like incrementing a
binary counter: each trailing peak of consecutive height is a carry that
merges with the new node.

Example state after 7 leaves::

            6
          /   \\
         2     5        9
        / \\   / \\     / \\
       0   1 3   4   7   8   10

    peaks (tallest first): 6, 9, 10
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .bitmap import heights_bitmap, height_at, is_valid_size, mmr_size, popcount
from .errors import (
    CapacityExceeded,
    InvalidLeafValue,
    LeafNotFound,
    MalformedSnapshot,
)
from .hashing import HashOracle, default_oracle, get_oracle
from .index import to_flat_index

logger = logging.getLogger(__name__)

PathStep = Tuple[bytes, bool]  # (sibling digest, sibling is the left operand)


def bag(peaks: Sequence[bytes], oracle: HashOracle) -> bytes:
    """Root over ``peaks``: a single peak is the root, otherwise hash them all.

    Oracles without a ``bag_hash`` bag with ``leaf_hash``.
    """
    if len(peaks) == 1:
        return peaks[0]
    bag_hash = getattr(oracle, "bag_hash", oracle.leaf_hash)
    return bag_hash(b"".join(peaks))


@dataclass(frozen=True)
class ProofMaterial:
    """Point-in-time membership proof.

    ``path`` runs from the leaf up to the peak of its mountain; ``peaks`` is
    the full peak list at ``snapshot_size`` elements. A proof opened from a
    size-less envelope has ``snapshot_size=None``.
    """

    snapshot_size: Optional[int]
    path: Tuple[PathStep, ...]
    peaks: Tuple[bytes, ...]


class Accumulator:
    """Append-only MMR over an abstract :class:`HashOracle`.

    Not thread-safe: ``add_leaf`` must be serialized by the owner and must not
    interleave with readers (see ``cairn_api.ledger.MountainLog``).
    """

    def __init__(self, oracle: Optional[HashOracle] = None):
        self.oracle = oracle if oracle is not None else default_oracle()
        self._elements: List[bytes] = []
        self._peaks: List[bytes] = []
        self._leaf_count = 0

    # -- state -------------------------------------------------------------

    @property
    def size(self) -> int:
        """Number of stored elements (leaves plus merge nodes)."""
        return len(self._elements)

    @property
    def leaf_count(self) -> int:
        return self._leaf_count

    @property
    def elements(self) -> Tuple[bytes, ...]:
        return tuple(self._elements)

    @property
    def peaks(self) -> Tuple[bytes, ...]:
        """Peaks as maintained by insertion, tallest first."""
        return tuple(self._peaks)

    def element(self, flat_index: int) -> bytes:
        return self._elements[flat_index]

    def height_at(self, flat_index: int) -> int:
        if not 0 <= flat_index < len(self._elements):
            raise IndexError(f"flat index {flat_index} out of range")
        return height_at(flat_index)

    def leaf_digest(self, normal_index: int) -> bytes:
        if not 0 <= normal_index < self._leaf_count:
            raise LeafNotFound(f"no leaf at index {normal_index}")
        return self._elements[to_flat_index(normal_index)]

    def __len__(self) -> int:
        return self._leaf_count

    def __repr__(self) -> str:
        return f"{type(self).__name__}(leaves={self._leaf_count}, size={self.size})"

    # -- insertion ---------------------------------------------------------

    def _check_insert(self, value: bytes) -> None:
        """Hook for bounded variants; raise before anything is appended."""

    def add_leaf(self, value: bytes) -> None:
        self._check_insert(value)
        next_hash = self.oracle.leaf_hash(value)
        # peaks present before this insertion, lowest height in bit 0
        bitmap, _ = heights_bitmap(len(self._elements))
        current_pos = len(self._elements)
        created = [next_hash]
        height = 1
        while bitmap & 1:
            # the peak to merge with ends one mountain-width back
            prev_peak = self._elements[current_pos - ((1 << height) - 1)]
            next_hash = self.oracle.merge(prev_peak, next_hash)
            created.append(next_hash)
            bitmap >>= 1
            height += 1
            current_pos += 1
        merges = len(created) - 1
        # commit only after every hash succeeded
        self._elements.extend(created)
        if merges:
            del self._peaks[-merges:]
            logger.debug("leaf %d merged %d peaks", self._leaf_count, merges)
        self._peaks.append(next_hash)
        self._leaf_count += 1

    def extend(self, values) -> None:
        for value in values:
            self.add_leaf(value)

    # -- peaks and roots ---------------------------------------------------

    def _peaks_for(self, size: int) -> List[bytes]:
        # greedily fit the largest mountain (2^k - 1 elements) into what is left
        tree_size = (1 << size.bit_length()) - 1
        remaining = size
        boundary = 0
        peaks = []
        while tree_size > 0:
            if remaining >= tree_size:
                boundary += tree_size
                peaks.append(self._elements[boundary - 1])
                remaining -= tree_size
            tree_size >>= 1
        return peaks

    def get_peaks(self) -> List[bytes]:
        return self._peaks_for(len(self._elements))

    def bag_peaks(self) -> bytes:
        return bag(self._peaks, self.oracle)

    @property
    def root(self) -> bytes:
        return self.bag_peaks()

    def peaks_at(self, size: int) -> List[bytes]:
        """Peaks the accumulator had when it held ``size`` elements."""
        if not 0 <= size <= len(self._elements) or not is_valid_size(size):
            raise ValueError(f"{size} is not a past size of this accumulator")
        return self._peaks_for(size)

    def root_at(self, size: int) -> bytes:
        return bag(self.peaks_at(size), self.oracle)

    # -- persistence -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "oracle": getattr(self.oracle, "name", type(self.oracle).__name__),
            "leaf_count": self._leaf_count,
            "elements": [e.hex() for e in self._elements],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], oracle: Optional[HashOracle] = None, **kwargs):
        if not isinstance(data, dict):
            raise MalformedSnapshot("snapshot must be a JSON object")
        if oracle is None:
            name = data.get("oracle")
            try:
                oracle = get_oracle(name) if name else default_oracle()
            except (AttributeError, ValueError) as e:
                raise MalformedSnapshot(f"unusable oracle in snapshot: {e}") from e
        try:
            n = int(data["leaf_count"])
            elements = [bytes.fromhex(e) for e in data["elements"]]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedSnapshot(f"unreadable snapshot: {e}") from e
        if n < 0 or len(elements) != mmr_size(n):
            raise MalformedSnapshot(
                f"{len(elements)} elements cannot hold {n} leaves"
            )
        if any(len(e) != oracle.digest_size for e in elements):
            raise MalformedSnapshot("digest width does not match oracle")
        acc = cls(oracle, **kwargs)
        acc._elements = elements
        acc._leaf_count = n
        acc._peaks = acc._peaks_for(len(elements))
        return acc


class BoundedAccumulator(Accumulator):
    """Accumulator with a depth cap and a reserved zero leaf value."""

    def __init__(
        self,
        oracle: Optional[HashOracle] = None,
        max_depth: Optional[int] = None,
        zero_value: bytes = b"",
    ):
        super().__init__(oracle)
        if max_depth is None:
            from .settings import settings

            max_depth = settings.max_depth
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        self.max_depth = max_depth
        self.zero_value = zero_value

    @property
    def capacity(self) -> int:
        return 1 << self.max_depth

    def _check_insert(self, value: bytes) -> None:
        if bytes(value) == self.zero_value:
            raise InvalidLeafValue("leaf value is the reserved zero value")
        if self._leaf_count >= self.capacity:
            raise CapacityExceeded(
                f"log is full: {self.capacity} leaves at depth {self.max_depth}"
            )


class ProofBuilder:
    """Builds :class:`ProofMaterial` from a live accumulator."""

    def __init__(self, accumulator: Accumulator):
        self.acc = accumulator

    def path(self, flat_index: int, size: Optional[int] = None) -> List[PathStep]:
        """Siblings from the leaf at ``flat_index`` up to its mountain peak."""
        elements = self.acc._elements
        size = len(elements) if size is None else size
        if not 0 <= flat_index < size or height_at(flat_index) != 0:
            raise LeafNotFound(f"flat index {flat_index} is not a leaf of a size-{size} log")
        path: List[PathStep] = []
        current = flat_index
        height = 0
        while True:
            offset = (1 << (height + 1)) - 1
            # a left sibling of the same height means we are a right child
            if current >= offset and height_at(current - offset) == height:
                path.append((elements[current - offset], True))
                current += 1
            elif current + offset < size - 1:
                path.append((elements[current + offset], False))
                current += offset + 1
            else:
                # no sibling on either side: current is a peak
                break
            height += 1
        return path

    def build(self, flat_index: int, snapshot_size: Optional[int] = None) -> ProofMaterial:
        """Proof for the leaf at ``flat_index``.

        ``snapshot_size`` proves against an earlier state of the log; it
        defaults to the current size.
        """
        if snapshot_size is None:
            snapshot_size = self.acc.size
        elif not 0 <= snapshot_size <= self.acc.size or not is_valid_size(snapshot_size):
            raise ValueError(f"{snapshot_size} is not a past size of this accumulator")
        path = self.path(flat_index, snapshot_size)
        peaks = self.acc._peaks_for(snapshot_size)
        return ProofMaterial(snapshot_size, tuple(path), tuple(peaks))

    def build_for_leaf(self, normal_index: int, snapshot_size: Optional[int] = None) -> ProofMaterial:
        if normal_index < 0:
            raise LeafNotFound(f"no leaf at index {normal_index}")
        return self.build(to_flat_index(normal_index), snapshot_size)


def build_proof(acc: Accumulator, flat_index: int) -> ProofMaterial:
    return ProofBuilder(acc).build(flat_index)


def expected_peak_count(size: int) -> int:
    """Number of peaks for a valid size; equals popcount of the leaf count."""
    return popcount(heights_bitmap(size)[0])
