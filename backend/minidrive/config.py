"""MiniDrive configuration, loaded from the environment and .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "MiniDrive"
    debug: bool = True
    environment: str = "development"
    log_level: str = "INFO"

    # Network
    host: str = "127.0.0.1"
    port: int = 8080
    api_prefix: str = "/api"
    cors_origins: list[str] = ["*"]

    # Auth: HMAC-signed JWTs, secret handed to TokenService at startup
    secret_key: str = "change-me-in-prod"
    token_algorithm: str = "HS256"
    token_issuer: str = "minio-cloud-storage"
    access_token_expire_minutes: int = 24 * 60
    refresh_token_expire_days: int = 7

    # Object store
    minio_host: str = "localhost:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_tls: bool = False
    bucket_name: str = "files"

    # Upload limits, enforced before the multipart body is parsed
    max_upload_bytes: int = 32 * 1024 * 1024
    max_folder_upload_bytes: int = 100 * 1024 * 1024

    # Identity store
    data_dir: str = "./data"
    database_path: str = "./data/minidrive.db"

    # Mode: dev = seeded demo accounts, prod = users provisioned externally
    mode: str = "dev"

    @property
    def is_dev_mode(self) -> bool:
        return self.mode == "dev"

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="MINIDRIVE_",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        if isinstance(value, list):
            return value
        return ["*"]

    @field_validator("token_algorithm")
    @classmethod
    def _hmac_only(cls, value: str) -> str:
        if value not in ("HS256", "HS384", "HS512"):
            raise ValueError(f"token_algorithm must be an HMAC algorithm, got {value!r}")
        return value

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure data paths are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "database_path"):
            val = getattr(self, field)
            if not Path(val).is_absolute():
                setattr(self, field, str(base / val))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
