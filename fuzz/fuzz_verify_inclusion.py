"""Membership proof fuzzing with mutated proofs and hostile structure."""
from __future__ import annotations
import atheris
import dataclasses
import sys
import random

with atheris.instrument_imports():
    from cairn_api.errors import MalformedProof, VerificationFailed
    from cairn_api.hashing import Sha256Oracle
    from cairn_api.mmr import Accumulator, ProofBuilder
    from cairn_sdk.verify import ProofVerifier


def TestOneInput(data: bytes):  # noqa: N802
    if len(data) < 8:
        return
    # Derive variable chunk size & mutation seed
    seed = int.from_bytes(data[:4], 'little')
    random.seed(seed)
    chunk_len = 1 + (data[4] % 32)
    body = data[5:]
    values = [body[i:i+chunk_len] for i in range(0, min(len(body), chunk_len * 48), chunk_len)]
    if len(values) < 2:
        return
    acc = Accumulator(Sha256Oracle())
    acc.extend(values)
    idx = seed % len(values)
    proof = ProofBuilder(acc).build_for_leaf(idx)
    verifier = ProofVerifier(acc.oracle)
    roll = random.random()
    if roll < 0.2 and proof.path:
        # flip one sibling byte
        path = list(proof.path)
        step = random.randrange(len(path))
        sib, side = path[step]
        path[step] = (bytes([sib[0] ^ 0x01]) + sib[1:], side)
        if verifier.verify(values[idx], dataclasses.replace(proof, path=tuple(path)), acc.root):
            raise RuntimeError("tampered proof unexpectedly verified")
    elif roll < 0.4:
        # arbitrary structure must be rejected without raising anything else
        junk = [body[i:i+32] for i in range(0, len(body), 32)]
        hostile = dataclasses.replace(
            proof,
            snapshot_size=seed % 4096,
            path=tuple((j, bool(k & 1)) for k, j in enumerate(junk[1:])),
            peaks=tuple(junk[:1]),
        )
        try:
            verifier.check(values[idx], hostile, acc.root)
        except (MalformedProof, VerificationFailed):
            pass
    else:
        if not verifier.verify(values[idx], proof, acc.root):
            raise RuntimeError("valid proof failed")


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
