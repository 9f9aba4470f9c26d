from __future__ import annotations
from typing import Optional


class MMRError(Exception):
    """Base class for every error raised by the accumulator and its proofs."""


class InvalidLeafValue(MMRError, ValueError):
    """Leaf value is reserved (e.g. the zero sentinel of a bounded log)."""


class CapacityExceeded(MMRError):
    """Insertion would grow the log beyond its configured depth."""


class LeafNotFound(MMRError, LookupError):
    """No recorded leaf at the requested index or with the requested value."""


class IndexMappingError(MMRError, ValueError):
    """Normal/flat index conversion got out-of-range or non-leaf input."""


class MalformedProof(MMRError):
    """Proof is structurally inconsistent; raised before any hashing."""


class MalformedSnapshot(MMRError, ValueError):
    """Persisted state does not describe a valid accumulator."""


class VerificationFailed(MMRError):
    """Proof replay did not land on a peak, or the peaks do not bag to the root.

    ``reason`` is one of ``"peak_not_found"`` or ``"root_mismatch"``.
    """

    PEAK_NOT_FOUND = "peak_not_found"
    ROOT_MISMATCH = "root_mismatch"

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        super().__init__(detail or reason)
