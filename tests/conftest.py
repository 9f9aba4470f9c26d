import os
import sys
from pathlib import Path

import pytest

# Ensure the 'src' directory is on sys.path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Default dev keygen is allowed in tests; pin the oracle regardless of .env
os.environ.setdefault("CAIRN_ALLOW_DEV_KEYGEN", "true")
os.environ["CAIRN_HASH"] = "sha256"

from cairn_api.hashing import Sha256Oracle  # noqa: E402


@pytest.fixture
def oracle():
    return Sha256Oracle()


@pytest.fixture
def api_client(tmp_path, monkeypatch):
    monkeypatch.setenv("CAIRN_SNAPSHOT_PATH", str(tmp_path / "storage/mmr.json"))
    monkeypatch.setenv(
        "CAIRN_SIGNING_KEY_PATH", str(tmp_path / "keys/ed25519_private.key")
    )
    monkeypatch.setenv(
        "CAIRN_SIGNING_PUBKEY_PATH", str(tmp_path / "keys/ed25519_public.key")
    )
    from fastapi.testclient import TestClient
    from cairn_api.main import app as _app

    return TestClient(_app)
