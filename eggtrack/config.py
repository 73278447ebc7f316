"""
EggTrack Backend — Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by main.py, middleware, and the storage/service factories.
When:  Loaded once at module import time; the storage backend is chosen from
       it once, in create_app(), and injected from there.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

STORAGE_BACKENDS = {"blob", "local"}


def format_base_url(base_url: Optional[str]) -> str:
    """
    Normalize a public base URL.

    Missing → http://localhost:3000; bare domain → https:// prefix;
    anything that already carries a scheme is returned without a trailing slash.
    """
    if not base_url:
        return "http://localhost:3000"
    if base_url.startswith("http://") or base_url.startswith("https://"):
        return base_url.rstrip("/")
    return f"https://{base_url}".rstrip("/")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults suitable for local development (local file
    storage, no secret). Production deployments MUST set ADD_SECRET and,
    for the remote blob backend, BLOB_READ_WRITE_TOKEN.
    """

    # ── Storage ───────────────────────────────────────────────────────────
    # "blob": Vercel Blob over HTTPS; "local": a JSON file on disk
    storage_backend: str = Field(default="local")

    # Bearer token for the blob REST API (env: BLOB_READ_WRITE_TOKEN)
    blob_read_write_token: str = Field(default="")
    blob_api_url: str = Field(default="https://blob.vercel-storage.com")

    # Logical path of the entries document inside the blob store
    blob_path: str = Field(default="labels/entries.json")

    # Optional direct public URL of the document, used when listing fails
    blob_public_url: str = Field(default="")

    # httpx's own default is 5s
    blob_timeout: float = Field(default=5.0, gt=0, le=120)

    local_storage_path: str = Field(default="./data/entries.json")

    # Single attempt unless raised; retries only cover transport failures
    storage_write_attempts: int = Field(default=1, ge=1, le=10)
    storage_retry_min_wait: float = Field(default=0.5, ge=0, le=30)
    storage_retry_max_wait: float = Field(default=5.0, ge=0, le=120)

    # Serialize append/delete through one in-process lock (single writer)
    serialize_mutations: bool = Field(default=False)

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Ensures the backend name is one we know how to build."""
        lower = v.strip().lower()
        if lower not in STORAGE_BACKENDS:
            raise ValueError(
                f"Invalid storage_backend '{v}'. Must be one of: {sorted(STORAGE_BACKENDS)}"
            )
        return lower

    # ── Auth ──────────────────────────────────────────────────────────────
    # Shared secret for every mutating endpoint (env: ADD_SECRET).
    # Empty means "nothing is authorized".
    add_secret: str = Field(default="")

    # ── Links ─────────────────────────────────────────────────────────────
    base_url: str = Field(default="http://localhost:3000")
    default_link_template: str = Field(default="https://www.notion.so/{egg_id}")
    webhook_link_template: str = Field(default="https://www.notion.so/{egg_id}")

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        return format_base_url(v)

    @field_validator("default_link_template", "webhook_link_template")
    @classmethod
    def validate_link_template(cls, v: str) -> str:
        """Templates are formatted with egg_id only."""
        try:
            v.format(egg_id="Egg-1")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid link template '{v}': {e}") from e
        return v

    # ── Label sheet ───────────────────────────────────────────────────────
    sheet_columns: int = Field(default=3, ge=1, le=8)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Comma-separated list of allowed origins
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Per-IP sliding window over the secret-gated endpoints only
    rate_limit_requests: int = Field(default=30, ge=1, le=10000)
    rate_limit_window: int = Field(default=60, ge=1, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        Validates that critical settings are configured.

        Called from the lifespan; the caller logs the error and keeps
        serving (reads still work, mutations are rejected or fail).
        """
        errors = []
        if not self.add_secret:
            errors.append(
                "ADD_SECRET is not set. Every add/delete/egg-number request will be rejected."
            )
        if self.storage_backend == "blob" and not self.blob_read_write_token:
            errors.append(
                "STORAGE_BACKEND=blob but BLOB_READ_WRITE_TOKEN is not set. "
                "Reads will return no entries and writes will fail."
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance — imported throughout the application
settings = Settings()
