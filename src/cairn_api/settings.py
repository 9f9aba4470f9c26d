from __future__ import annotations
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # Hash oracle used for leaves, merges and bagging ("sha256" | "blake2b")
    hash_name: str = Field(default="sha256", alias="CAIRN_HASH")
    # Depth cap for bounded logs: at most 2**max_depth leaves
    max_depth: int = Field(default=32, alias="CAIRN_MAX_DEPTH")

    snapshot_path: str = Field(
        default="./storage/mmr.json", alias="CAIRN_SNAPSHOT_PATH"
    )

    signing_key_path: str = Field(
        default="./keys/ed25519_private.key", alias="CAIRN_SIGNING_KEY_PATH"
    )
    signing_pubkey_path: str = Field(
        default="./keys/ed25519_public.key", alias="CAIRN_SIGNING_PUBKEY_PATH"
    )
    allow_dev_keygen: bool = Field(default=False, alias="CAIRN_ALLOW_DEV_KEYGEN")

    # Global request size limit enforced by middleware (bytes)
    max_request_bytes: int = Field(default=262144, alias="CAIRN_MAX_REQUEST_BYTES")

    log_level: str = Field(default="INFO", alias="CAIRN_LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()  # load at import
