from __future__ import annotations
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator
from pydantic import ConfigDict

from .crypto import B64, B64D
from .mmr import ProofMaterial


def _check_b64(v: str) -> str:
    B64D(v)  # raises ValueError on bad input
    return v


class AppendRequest(BaseModel):
    """Inbound leaf (strict): raw bytes as base64."""

    model_config = ConfigDict(strict=True)

    value_b64: str

    @field_validator("value_b64")
    @classmethod
    def _valid_b64(cls, v: str) -> str:
        return _check_b64(v)


class AppendResult(BaseModel):
    leaf_index: int
    flat_index: int
    size: int
    leaf_count: int
    root_b64: str


class PathStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sibling_b64: str
    sibling_is_left: bool

    @field_validator("sibling_b64")
    @classmethod
    def _valid_b64(cls, v: str) -> str:
        return _check_b64(v)


class MMRProofModel(BaseModel):
    """Serialized :class:`~cairn_api.mmr.ProofMaterial`."""

    model_config = ConfigDict(extra="forbid")

    snapshot_size: int = Field(ge=0)
    path: List[PathStep] = Field(default_factory=list)
    peaks_b64: List[str] = Field(default_factory=list)


class ProofEnvelope(BaseModel):
    """Self-contained membership claim handed to external verifiers.

    Any consumer (including a circuit re-implementation) replays ``path`` over
    the leaf hash, checks the result is one of ``peaks_b64`` and bags the
    peaks into ``root_b64``, in that order.
    """

    model_config = ConfigDict(extra="forbid")

    leaf_value_b64: str
    path: List[PathStep] = Field(default_factory=list)
    peaks_b64: List[str] = Field(default_factory=list)
    root_b64: str

    @field_validator("leaf_value_b64", "root_b64")
    @classmethod
    def _valid_b64(cls, v: str) -> str:
        return _check_b64(v)


class SignedRootHead(BaseModel):
    size: int
    leaf_count: int
    root_b64: str
    ts: str
    signer_pubkey_b64: str
    signature_b64: str


class VerifyResult(BaseModel):
    valid: bool
    reason: Optional[str] = None


class PeaksResponse(BaseModel):
    size: int
    leaf_count: int
    peaks_b64: List[str]


def _path_models(path) -> List[PathStep]:
    return [PathStep(sibling_b64=B64(s), sibling_is_left=left) for s, left in path]


def _path_tuples(path: List[PathStep]) -> Tuple[Tuple[bytes, bool], ...]:
    return tuple((B64D(p.sibling_b64), p.sibling_is_left) for p in path)


def proof_to_model(proof: ProofMaterial) -> MMRProofModel:
    return MMRProofModel(
        snapshot_size=proof.snapshot_size,
        path=_path_models(proof.path),
        peaks_b64=[B64(p) for p in proof.peaks],
    )


def proof_from_model(model: MMRProofModel) -> ProofMaterial:
    return ProofMaterial(
        snapshot_size=model.snapshot_size,
        path=_path_tuples(model.path),
        peaks=tuple(B64D(p) for p in model.peaks_b64),
    )


def make_envelope(leaf_value: bytes, proof: ProofMaterial, root: bytes) -> ProofEnvelope:
    return ProofEnvelope(
        leaf_value_b64=B64(leaf_value),
        path=_path_models(proof.path),
        peaks_b64=[B64(p) for p in proof.peaks],
        root_b64=B64(root),
    )


def open_envelope(env: ProofEnvelope) -> Tuple[bytes, ProofMaterial, bytes]:
    """Split an envelope into ``(leaf_value, proof, root)``.

    The envelope carries no size, so ``snapshot_size`` is ``None`` and the
    verifier skips the size-dependent structural checks.
    """
    proof = ProofMaterial(
        snapshot_size=None,
        path=_path_tuples(env.path),
        peaks=tuple(B64D(p) for p in env.peaks_b64),
    )
    return B64D(env.leaf_value_b64), proof, B64D(env.root_b64)
