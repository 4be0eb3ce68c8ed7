from __future__ import annotations

from urllib.parse import urlsplit

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    # Downstream collaborators (full URL with scheme)
    extraction_service_url: str = "http://127.0.0.1:8000"
    enrichment_service_url: str = "http://127.0.0.1:8001"

    # Downstream mode: http | mock
    downstream_mode: str = "http"
    downstream_timeout_seconds: float = 30.0
    downstream_max_attempts: int = 1          # 1 = single-shot, no retry
    downstream_retry_backoff_seconds: float = 0.5

    # Upload gate and normalization
    max_upload_bytes: int = 10 * 1024 * 1024
    max_image_side: int = 500
    jpeg_quality: int = 90

    # Basic auth gate, enabled only when a password is configured
    basic_auth_username: str = "jplens"
    basic_auth_password: str | None = None

    static_dir: str | None = None

    @field_validator("extraction_service_url", "enrichment_service_url")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        parts = urlsplit(value.strip())
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise ValueError(
                f"service URL must be an absolute http(s) URL including the scheme, got {value!r}"
            )
        return value.strip().rstrip("/")

    @field_validator("downstream_mode")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        mode = value.lower().strip()
        if mode not in {"http", "mock"}:
            raise ValueError(f"Unknown DOWNSTREAM_MODE={value!r}, expected http or mock")
        return mode

    @field_validator("downstream_max_attempts", "max_upload_bytes", "max_image_side")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("jpeg_quality")
    @classmethod
    def _check_quality(cls, value: int) -> int:
        if not 1 <= value <= 95:
            raise ValueError("jpeg_quality must be between 1 and 95")
        return value


settings = Settings()
