from __future__ import annotations
import os
import threading
import datetime
from pathlib import Path
from typing import Dict
from fastapi import FastAPI, HTTPException
from pydantic import ValidationError

from .settings import settings
from .crypto import B64D
from .errors import CapacityExceeded, InvalidLeafValue, LeafNotFound, MalformedProof, VerificationFailed
from .ledger import MountainLog
from .logutil import setup_logging
from .models import (
    AppendRequest,
    AppendResult,
    PeaksResponse,
    ProofEnvelope,
    SignedRootHead,
    VerifyResult,
    open_envelope,
)
from .middleware.size_limit import SizeLimitMiddleware

from cairn_sdk.verify import ProofVerifier

setup_logging(settings.log_level)

app = FastAPI(title="Cairn MMR log")
app.add_middleware(SizeLimitMiddleware)

_logs: Dict[str, MountainLog] = {}
_logs_lock = threading.Lock()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _snapshot_path() -> Path:
    return Path(os.getenv("CAIRN_SNAPSHOT_PATH", settings.snapshot_path))


def get_log() -> MountainLog:
    """One log per snapshot path, loaded lazily on first use."""
    path = _snapshot_path()
    key = str(path.resolve())
    with _logs_lock:
        log = _logs.get(key)
        if log is None:
            log = MountainLog.open(path)
            _logs[key] = log
    return log


def _load_keys():
    sk_path = Path(os.getenv("CAIRN_SIGNING_KEY_PATH", settings.signing_key_path))
    pk_path = Path(os.getenv("CAIRN_SIGNING_PUBKEY_PATH", settings.signing_pubkey_path))
    if not sk_path.exists() or not pk_path.exists():
        # generate if allowed for development only (gated by CAIRN_ALLOW_DEV_KEYGEN)
        if not _env_flag("CAIRN_ALLOW_DEV_KEYGEN", settings.allow_dev_keygen):
            raise FileNotFoundError(
                "signing keypair not found; set CAIRN_ALLOW_DEV_KEYGEN=true to auto-generate for development"
            )
        from nacl.signing import SigningKey

        sk_path.parent.mkdir(parents=True, exist_ok=True)
        pk_path.parent.mkdir(parents=True, exist_ok=True)
        sk = SigningKey.generate()
        sk_path.write_bytes(sk.encode())
        pk_path.write_bytes(sk.verify_key.encode())
    return sk_path.read_bytes(), pk_path.read_bytes()


@app.post("/mmr/leaves", response_model=AppendResult)
async def append_leaf(body: dict):
    try:
        req = AppendRequest.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="value_b64 must be a base64 string")
    log = get_log()
    try:
        result = log.append(B64D(req.value_b64))
    except InvalidLeafValue as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CapacityExceeded as e:
        raise HTTPException(status_code=507, detail=str(e))
    log.save(_snapshot_path())
    return result


@app.get("/mmr/root", response_model=SignedRootHead)
async def root_head():
    try:
        sk_bytes, pk_bytes = _load_keys()
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return get_log().root_head(sk_bytes, pk_bytes)


@app.get("/mmr/peaks", response_model=PeaksResponse)
async def peaks():
    return get_log().peaks()


@app.get("/mmr/proof/{leaf_index}", response_model=ProofEnvelope)
async def proof(leaf_index: int):
    try:
        return get_log().prove(leaf_index)
    except LeafNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/mmr/verify", response_model=VerifyResult)
async def verify(envelope: dict):
    try:
        leaf, material, root = open_envelope(ProofEnvelope.model_validate(envelope))
    except (ValidationError, ValueError):
        raise HTTPException(status_code=400, detail="invalid proof envelope")
    verifier = ProofVerifier(get_log().acc.oracle)
    try:
        verifier.check(leaf, material, root)
    except MalformedProof:
        return VerifyResult(valid=False, reason="malformed")
    except VerificationFailed as e:
        return VerifyResult(valid=False, reason=e.reason)
    return VerifyResult(valid=True)


@app.get("/healthz")
async def healthz():
    log = get_log()
    return {
        "ok": True,
        "leaf_count": log.acc.leaf_count,
        "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }
