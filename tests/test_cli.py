import json

from typer.testing import CliRunner

from cairn_api.crypto import B64
from cairn_api.ledger import MountainLog
from cairn_cli.__main__ import app
from cairn_sdk.verify import verify_root_head

runner = CliRunner()


def _snap(tmp_path):
    return str(tmp_path / "storage" / "mmr.json")


def test_append_and_root(tmp_path):
    snap = _snap(tmp_path)
    r = runner.invoke(app, ["append", "a", "b", "c", "--snapshot", snap])
    assert r.exit_code == 0, r.output
    assert "leaf 2 -> flat 3" in r.output
    log = MountainLog.load(snap)
    assert log.value(1) == b"b"
    r = runner.invoke(app, ["root", "--snapshot", snap])
    assert r.exit_code == 0
    assert B64(log.root()) in r.output


def test_prove_and_verify(tmp_path):
    snap = _snap(tmp_path)
    runner.invoke(app, ["append", "x", "y", "z", "w", "v", "--snapshot", snap])
    out = tmp_path / "proof.json"
    r = runner.invoke(app, ["prove", "--index", "3", "--snapshot", snap, "--out", str(out)])
    assert r.exit_code == 0, r.output
    r = runner.invoke(app, ["verify", str(out)])
    assert r.exit_code == 0, r.output

    env = json.loads(out.read_text())
    env["leaf_value_b64"] = B64(b"q")
    out.write_text(json.dumps(env))
    r = runner.invoke(app, ["verify", str(out)])
    assert r.exit_code == 1


def test_prove_to_stdout(tmp_path):
    snap = _snap(tmp_path)
    runner.invoke(app, ["append", "only", "--snapshot", snap])
    r = runner.invoke(app, ["prove", "--index", "0", "--snapshot", snap])
    assert r.exit_code == 0
    env = json.loads(r.output)
    assert env["path"] == []
    r = runner.invoke(app, ["prove", "--index", "1", "--snapshot", snap])
    assert r.exit_code == 1


def test_reserved_value_exit_code(tmp_path):
    r = runner.invoke(app, ["append", "", "--snapshot", _snap(tmp_path)])
    assert r.exit_code == 1


def test_corrupt_snapshot_exit_code(tmp_path):
    snap = tmp_path / "mmr.json"
    snap.write_text("[]")
    r = runner.invoke(app, ["root", "--snapshot", str(snap)])
    assert r.exit_code == 2


def test_bitmap():
    r = runner.invoke(app, ["bitmap", "25"])
    assert r.exit_code == 0
    assert "0b1110" in r.output
    r = runner.invoke(app, ["bitmap", "--", "-1"])
    assert r.exit_code == 2


def test_gen_keys_and_sign_root(tmp_path):
    keys = tmp_path / "keys"
    r = runner.invoke(app, ["gen-keys", "--out-dir", str(keys)])
    assert r.exit_code == 0
    snap = _snap(tmp_path)
    runner.invoke(app, ["append", "a", "b", "--snapshot", snap])
    head_path = tmp_path / "head.json"
    r = runner.invoke(
        app,
        ["sign-root", "--snapshot", snap, "--keys-dir", str(keys), "--out", str(head_path)],
    )
    assert r.exit_code == 0, r.output
    head = json.loads(head_path.read_text())
    assert head["leaf_count"] == 2
    assert verify_root_head(head)


def test_sign_root_without_keys(tmp_path):
    r = runner.invoke(
        app, ["sign-root", "--snapshot", _snap(tmp_path), "--keys-dir", str(tmp_path / "none")]
    )
    assert r.exit_code == 1


def test_verify_unreadable_envelope(tmp_path):
    bad = tmp_path / "proof.json"
    bad.write_text("{not json")
    r = runner.invoke(app, ["verify", str(bad)])
    assert r.exit_code == 1
    assert isinstance(r.exception, SystemExit)
    r = runner.invoke(app, ["verify", str(tmp_path / "missing.json")])
    assert r.exit_code == 1
    assert isinstance(r.exception, SystemExit)
