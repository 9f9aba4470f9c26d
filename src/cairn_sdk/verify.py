import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from cairn_api.bitmap import heights_bitmap, popcount
from cairn_api.crypto import ed25519_verify, jcs_dumps, B64D
from cairn_api.errors import MalformedProof, VerificationFailed
from cairn_api.hashing import HashOracle, default_oracle
from cairn_api.mmr import ProofMaterial, bag
from cairn_api.models import ProofEnvelope, open_envelope

logger = logging.getLogger(__name__)

# No accumulator reaches 2**64 leaves; anything longer is garbage.
MAX_PATH_LENGTH = 64


class ProofVerifier:
    """Stateless membership-proof checker.

    Holds no reference to a live accumulator, only the hash oracle, so it can
    run anywhere a proof and a root are available.
    """

    def __init__(self, oracle: Optional[HashOracle] = None):
        self.oracle = oracle if oracle is not None else default_oracle()

    def _check_structure(self, proof: ProofMaterial) -> None:
        width = self.oracle.digest_size
        if not proof.peaks:
            raise MalformedProof("proof carries no peaks")
        if len(proof.path) > MAX_PATH_LENGTH:
            raise MalformedProof(f"path of {len(proof.path)} steps is too long")
        for sibling, is_left in proof.path:
            if not isinstance(is_left, bool):
                raise MalformedProof("sibling side must be a bool")
            if len(sibling) != width:
                raise MalformedProof(f"path digest is not {width} bytes")
        if any(len(p) != width for p in proof.peaks):
            raise MalformedProof(f"peak digest is not {width} bytes")
        if proof.snapshot_size is None:
            return
        if proof.snapshot_size <= 0:
            raise MalformedProof("snapshot size must be positive")
        bitmap, remainder = heights_bitmap(proof.snapshot_size)
        if remainder:
            raise MalformedProof(f"{proof.snapshot_size} is not a valid MMR size")
        if len(proof.peaks) != popcount(bitmap):
            raise MalformedProof(
                f"{len(proof.peaks)} peaks for a size with {popcount(bitmap)} mountains"
            )
        # the path climbs exactly one mountain, so its length is a peak height
        if not bitmap >> len(proof.path) & 1:
            raise MalformedProof(f"no mountain of height {len(proof.path)} at this size")

    def check(self, leaf_value: bytes, proof: ProofMaterial, root: bytes) -> None:
        """Raise :class:`MalformedProof` or :class:`VerificationFailed` unless valid."""
        self._check_structure(proof)
        current = self.oracle.leaf_hash(leaf_value)
        for sibling, sibling_is_left in proof.path:
            if sibling_is_left:
                current = self.oracle.merge(sibling, current)
            else:
                current = self.oracle.merge(current, sibling)
        if current not in proof.peaks:
            raise VerificationFailed(
                VerificationFailed.PEAK_NOT_FOUND, "replayed path does not reach a peak"
            )
        if bag(proof.peaks, self.oracle) != root:
            raise VerificationFailed(
                VerificationFailed.ROOT_MISMATCH, "peaks do not bag to the claimed root"
            )

    def verify(self, leaf_value: bytes, proof: ProofMaterial, root: bytes) -> bool:
        try:
            self.check(leaf_value, proof, root)
        except (MalformedProof, VerificationFailed) as e:
            logger.info("proof rejected: %s", e)
            return False
        return True


def verify_membership(
    leaf_value: bytes,
    proof: ProofMaterial,
    root: bytes,
    oracle: Optional[HashOracle] = None,
) -> bool:
    """Return True if ``proof`` shows ``leaf_value`` is committed under ``root``."""
    return ProofVerifier(oracle).verify(leaf_value, proof, root)


def verify_envelope(envelope_json: Dict[str, Any], oracle: Optional[HashOracle] = None) -> bool:
    """Verify a serialized proof envelope (leaf, path, peaks, root)."""
    try:
        env = ProofEnvelope.model_validate(envelope_json)
        leaf, proof, root = open_envelope(env)
    except (ValidationError, ValueError):
        return False
    return ProofVerifier(oracle).verify(leaf, proof, root)


def verify_root_head(head_json: Dict[str, Any]) -> bool:
    """Verify a signed root head's Ed25519 signature."""
    try:
        sig_b64 = head_json["signature_b64"]
        pub_b64 = head_json["signer_pubkey_b64"]
    except KeyError:
        return False
    body = {k: v for k, v in head_json.items() if k != "signature_b64"}
    try:
        canon = jcs_dumps(body)
        return ed25519_verify(B64D(pub_b64), canon, B64D(sig_b64))
    except (ValueError, TypeError):
        return False
