"""Fuzz harness for MMR construction & membership proof verification."""
from __future__ import annotations
import atheris
import sys

with atheris.instrument_imports():
    from cairn_api.hashing import Sha256Oracle
    from cairn_api.mmr import Accumulator, ProofBuilder
    from cairn_api.tracking import HeightTrackingAccumulator
    from cairn_sdk.verify import verify_membership


def TestOneInput(data: bytes):  # noqa: N802
    if not data:
        return
    # Split data deterministically into leaf values (bounded count)
    size = max(1, min(32, data[0]))
    values = [data[i : i + size] for i in range(1, min(len(data), 1 + size * 64), size)]
    if not values:
        return
    oracle = Sha256Oracle()
    acc = Accumulator(oracle)
    ref = HeightTrackingAccumulator(oracle)
    for v in values:
        acc.add_leaf(v)
        ref.add_leaf(v)
    if ref.bag_peaks() != acc.root:
        raise RuntimeError("bitmap and height-tracking roots diverge")
    if len(acc.peaks) != bin(acc.leaf_count).count("1"):
        raise RuntimeError("peak count is not popcount(leaf_count)")
    # Pick a leaf based on trailing byte
    idx = data[-1] % len(values)
    proof = ProofBuilder(acc).build_for_leaf(idx)
    if not verify_membership(values[idx], proof, acc.root, oracle):
        raise RuntimeError("valid membership proof failed")


def main():
    atheris.Setup(sys.argv, TestOneInput, enable_python_coverage=True)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
