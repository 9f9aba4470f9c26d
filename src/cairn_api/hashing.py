from __future__ import annotations
import hashlib
from typing import Protocol, runtime_checkable

# Leaf and internal hashes live in separate domains so an internal node can
# never be replayed as a leaf (second-preimage on the tree shape).
LEAF_PREFIX = b"\x00"
MERGE_PREFIX = b"\x01"
# Bagged roots get a third domain so a root is never a valid leaf hash.
BAG_PREFIX = b"\x02"


@runtime_checkable
class HashOracle(Protocol):
    """Two-operation hash contract the accumulator is parametric over."""

    digest_size: int

    def leaf_hash(self, value: bytes) -> bytes: ...

    def merge(self, left: bytes, right: bytes) -> bytes: ...


class _PrefixedOracle:
    name = "abstract"
    digest_size = 32

    def _digest(self, data: bytes) -> bytes:  # pragma: no cover - overridden
        raise NotImplementedError

    def leaf_hash(self, value: bytes) -> bytes:
        return self._digest(LEAF_PREFIX + bytes(value))

    def merge(self, left: bytes, right: bytes) -> bytes:
        if len(left) != self.digest_size or len(right) != self.digest_size:
            raise ValueError(f"merge operands must be {self.digest_size} bytes")
        return self._digest(MERGE_PREFIX + left + right)

    def bag_hash(self, peaks: bytes) -> bytes:
        return self._digest(BAG_PREFIX + bytes(peaks))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(digest_size={self.digest_size})"


class Sha256Oracle(_PrefixedOracle):
    name = "sha256"
    digest_size = 32

    def _digest(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


class Blake2bOracle(_PrefixedOracle):
    name = "blake2b"

    def __init__(self, digest_size: int = 32):
        if not 1 <= digest_size <= 64:
            raise ValueError("blake2b digest_size must be in [1, 64]")
        self.digest_size = digest_size

    def _digest(self, data: bytes) -> bytes:
        return hashlib.blake2b(data, digest_size=self.digest_size).digest()


_ORACLES = {
    "sha256": Sha256Oracle,
    "blake2b": Blake2bOracle,
}


def get_oracle(name: str = "sha256") -> HashOracle:
    """Resolve a configured hash name to an oracle instance."""
    try:
        factory = _ORACLES[name.lower()]
    except KeyError:
        raise ValueError(f"unknown hash oracle: {name}") from None
    return factory()


def default_oracle() -> HashOracle:
    from .settings import settings

    return get_oracle(settings.hash_name)
