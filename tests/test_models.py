import pytest
from pydantic import ValidationError

from cairn_api.mmr import ProofBuilder
from cairn_api.models import (
    AppendRequest,
    MMRProofModel,
    ProofEnvelope,
    make_envelope,
    open_envelope,
    proof_from_model,
    proof_to_model,
)
from cairn_sdk.verify import verify_membership

from _helpers import filled


def test_proof_model_preserves_material():
    acc = filled(12)
    proof = ProofBuilder(acc).build_for_leaf(5)
    model = proof_to_model(proof)
    assert model.snapshot_size == acc.size
    again = proof_from_model(MMRProofModel.model_validate(model.model_dump()))
    assert again == proof


def test_envelope_drops_size_only():
    acc = filled(6)
    proof = ProofBuilder(acc).build_for_leaf(1)
    env = make_envelope(b"leaf-1", proof, acc.root)
    assert set(env.model_dump()) == {"leaf_value_b64", "path", "peaks_b64", "root_b64"}
    leaf, material, root = open_envelope(ProofEnvelope.model_validate(env.model_dump()))
    assert leaf == b"leaf-1"
    assert root == acc.root
    assert material.snapshot_size is None
    assert material.path == proof.path
    assert verify_membership(leaf, material, root)


def test_strict_inputs():
    with pytest.raises(ValidationError):
        AppendRequest.model_validate({"value_b64": b"aGk="})
    with pytest.raises(ValidationError):
        ProofEnvelope.model_validate(
            {"leaf_value_b64": "aGk=", "root_b64": "aGk=", "path": [{"sibling_b64": "!"}]}
        )
    with pytest.raises(ValidationError):
        MMRProofModel.model_validate({"snapshot_size": -1})
