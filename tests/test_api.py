import base64

from cairn_api.crypto import B64
from cairn_api.ledger import MountainLog
from cairn_sdk.verify import verify_envelope, verify_root_head


def _append(client, value: bytes):
    return client.post("/mmr/leaves", json={"value_b64": B64(value)})


def test_append_prove_verify(api_client, tmp_path):
    for i in range(5):
        r = _append(api_client, f"leaf-{i}".encode())
        assert r.status_code == 200, r.text
    body = r.json()
    assert body["leaf_index"] == 4
    assert body["flat_index"] == 7
    assert body["size"] == 8

    r = api_client.get("/mmr/proof/2")
    assert r.status_code == 200
    env = r.json()
    assert base64.b64decode(env["leaf_value_b64"]) == b"leaf-2"
    assert env["root_b64"] == body["root_b64"]
    assert verify_envelope(env)

    r = api_client.post("/mmr/verify", json=env)
    assert r.status_code == 200
    assert r.json() == {"valid": True, "reason": None}

    # snapshot was written after each append
    log = MountainLog.load(tmp_path / "storage/mmr.json")
    assert len(log) == 5
    assert B64(log.root()) == body["root_b64"]


def test_verify_reports_reason(api_client):
    for i in range(3):
        _append(api_client, f"leaf-{i}".encode())
    env = api_client.get("/mmr/proof/0").json()

    bad_leaf = dict(env, leaf_value_b64=B64(b"other"))
    r = api_client.post("/mmr/verify", json=bad_leaf)
    assert r.json() == {"valid": False, "reason": "peak_not_found"}

    bad_root = dict(env, root_b64=B64(b"\x00" * 32))
    r = api_client.post("/mmr/verify", json=bad_root)
    assert r.json() == {"valid": False, "reason": "root_mismatch"}

    no_peaks = dict(env, peaks_b64=[])
    r = api_client.post("/mmr/verify", json=no_peaks)
    assert r.json() == {"valid": False, "reason": "malformed"}

    r = api_client.post("/mmr/verify", json=dict(env, extra=1))
    assert r.status_code == 400


def test_peaks_and_health(api_client):
    for i in range(7):
        _append(api_client, f"leaf-{i}".encode())
    r = api_client.get("/mmr/peaks")
    assert r.status_code == 200
    assert r.json()["size"] == 11
    assert len(r.json()["peaks_b64"]) == 3
    r = api_client.get("/healthz")
    assert r.json()["ok"] is True
    assert r.json()["leaf_count"] == 7


def test_unknown_leaf_is_404(api_client):
    _append(api_client, b"only")
    assert api_client.get("/mmr/proof/1").status_code == 404
    assert api_client.get("/mmr/proof/-1").status_code == 404


def test_bad_leaf_requests(api_client):
    assert api_client.post("/mmr/leaves", json={"value_b64": "***"}).status_code == 400
    assert api_client.post("/mmr/leaves", json={"value_b64": 5}).status_code == 400
    assert api_client.post("/mmr/leaves", json={}).status_code == 400
    # the empty value is reserved
    assert _append(api_client, b"").status_code == 400


def test_full_log_is_507(api_client, monkeypatch):
    from cairn_api.settings import settings

    monkeypatch.setattr(settings, "max_depth", 1)
    assert _append(api_client, b"a").status_code == 200
    assert _append(api_client, b"b").status_code == 200
    r = _append(api_client, b"c")
    assert r.status_code == 507
    assert api_client.get("/mmr/peaks").json()["leaf_count"] == 2


def test_signed_root(api_client, tmp_path):
    _append(api_client, b"a")
    _append(api_client, b"b")
    r = api_client.get("/mmr/root")
    assert r.status_code == 200
    head = r.json()
    assert head["leaf_count"] == 2
    assert (tmp_path / "keys/ed25519_private.key").exists()
    assert verify_root_head(head)
    assert not verify_root_head(dict(head, size=head["size"] + 1))


def test_root_without_keys_is_503(api_client, monkeypatch):
    monkeypatch.setenv("CAIRN_ALLOW_DEV_KEYGEN", "false")
    assert api_client.get("/mmr/root").status_code == 503


def test_size_limit(api_client, monkeypatch):
    monkeypatch.setenv("CAIRN_MAX_REQUEST_BYTES", "64")
    r = _append(api_client, b"x" * 200)
    assert r.status_code == 413
    assert _append(api_client, b"small").status_code == 200


def test_verify_rejects_root_posing_as_leaf(api_client):
    for i in range(7):
        _append(api_client, f"leaf-{i}".encode())
    peaks = api_client.get("/mmr/peaks").json()["peaks_b64"]
    root_b64 = api_client.get("/mmr/proof/0").json()["root_b64"]
    forged = {
        "leaf_value_b64": B64(b"".join(base64.b64decode(p) for p in peaks)),
        "path": [],
        "peaks_b64": [root_b64],
        "root_b64": root_b64,
    }
    r = api_client.post("/mmr/verify", json=forged)
    assert r.json() == {"valid": False, "reason": "peak_not_found"}
