from __future__ import annotations
import datetime
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from .crypto import B64, B64D, ed25519_sign, jcs_dumps
from .errors import LeafNotFound, MalformedSnapshot
from .hashing import HashOracle
from .index import to_flat_index
from .mmr import Accumulator, BoundedAccumulator, ProofBuilder
from .models import AppendResult, PeaksResponse, ProofEnvelope, SignedRootHead, make_envelope

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class MountainLog:
    """Single-writer log service around one accumulator.

    Keeps the raw leaf values next to the digests so proofs can be handed out
    as self-contained envelopes and looked up by value. One lock serializes
    appends; readers take it too so none observes a half-finished cascade.
    """

    def __init__(self, accumulator: Optional[Accumulator] = None, oracle: Optional[HashOracle] = None):
        self.acc = accumulator if accumulator is not None else BoundedAccumulator(oracle)
        self._values: List[bytes] = []
        self._by_value: Dict[bytes, int] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self.acc)

    def append(self, value: bytes) -> AppendResult:
        with self._lock:
            # raises before mutating on reserved values or a full log
            self.acc.add_leaf(value)
            leaf_index = len(self._values)
            self._values.append(value)
            self._by_value.setdefault(value, leaf_index)
            result = AppendResult(
                leaf_index=leaf_index,
                flat_index=to_flat_index(leaf_index),
                size=self.acc.size,
                leaf_count=self.acc.leaf_count,
                root_b64=B64(self.acc.bag_peaks()),
            )
        logger.info("appended leaf %d (size=%d)", result.leaf_index, result.size)
        return result

    def root(self) -> bytes:
        with self._lock:
            return self.acc.bag_peaks()

    def peaks(self) -> PeaksResponse:
        with self._lock:
            return PeaksResponse(
                size=self.acc.size,
                leaf_count=self.acc.leaf_count,
                peaks_b64=[B64(p) for p in self.acc.get_peaks()],
            )

    def value(self, leaf_index: int) -> bytes:
        with self._lock:
            if not 0 <= leaf_index < len(self._values):
                raise LeafNotFound(f"no leaf at index {leaf_index}")
            return self._values[leaf_index]

    def prove(self, leaf_index: int) -> ProofEnvelope:
        with self._lock:
            value = self.value(leaf_index)
            proof = ProofBuilder(self.acc).build_for_leaf(leaf_index)
            root = self.acc.bag_peaks()
        return make_envelope(value, proof, root)

    def prove_value(self, value: bytes) -> ProofEnvelope:
        with self._lock:
            try:
                leaf_index = self._by_value[value]
            except KeyError:
                raise LeafNotFound("value was never appended") from None
            return self.prove(leaf_index)

    def root_head(self, sk_bytes: bytes, pk_bytes: bytes) -> SignedRootHead:
        with self._lock:
            size = self.acc.size
            leaf_count = self.acc.leaf_count
            root = self.acc.bag_peaks()
        body = {
            "size": size,
            "leaf_count": leaf_count,
            "root_b64": B64(root),
            "ts": _now_iso(),
            "signer_pubkey_b64": B64(pk_bytes),
        }
        sig = ed25519_sign(sk_bytes, jcs_dumps(body))
        return SignedRootHead(**{**body, "signature_b64": B64(sig)})

    # -- snapshots ---------------------------------------------------------

    def to_dict(self) -> dict:
        with self._lock:
            data = self.acc.to_dict()
            data["values_b64"] = [B64(v) for v in self._values]
            return data

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(self.to_dict(), indent=2))
        tmp.replace(path)
        return path

    @classmethod
    def from_dict(cls, data: dict, oracle: Optional[HashOracle] = None) -> "MountainLog":
        acc = BoundedAccumulator.from_dict(data, oracle)
        try:
            values = [B64D(v) for v in data.get("values_b64", [])]
        except (TypeError, ValueError) as e:
            raise MalformedSnapshot(f"unreadable leaf values: {e}") from e
        if len(values) != acc.leaf_count:
            raise MalformedSnapshot(
                f"{len(values)} leaf values for {acc.leaf_count} leaves"
            )
        for i, v in enumerate(values):
            if acc.oracle.leaf_hash(v) != acc.element(to_flat_index(i)):
                raise MalformedSnapshot(f"leaf value {i} does not match its digest")
        log = cls(acc)
        log._values = values
        for i, v in enumerate(values):
            log._by_value.setdefault(v, i)
        return log

    @classmethod
    def load(cls, path: Union[str, Path], oracle: Optional[HashOracle] = None) -> "MountainLog":
        try:
            data = json.loads(Path(path).read_text())
        except json.JSONDecodeError as e:
            raise MalformedSnapshot(f"snapshot is not JSON: {e}") from e
        return cls.from_dict(data, oracle)

    @classmethod
    def open(cls, path: Union[str, Path], oracle: Optional[HashOracle] = None) -> "MountainLog":
        """Load ``path`` if it exists, else start an empty log."""
        if Path(path).exists():
            return cls.load(path, oracle)
        return cls(oracle=oracle)
