from __future__ import annotations

import base64
import binascii

from pydantic import Field, PostgresDsn, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from insightflow.ingestion.feed_parser import DEFAULT_ENTRY_LIMIT


class MissingRequiredSettingsError(Exception):
    """Raised when required settings are missing."""

    def __init__(self, missing_fields: list[str]) -> None:
        """Initialize with list of missing field names."""
        self.missing_fields = missing_fields
        super().__init__(f"Missing required environment variables: {', '.join(missing_fields)}")


class InvalidSettingsError(Exception):
    """Raised when settings are invalid."""

    def __init__(self, invalid_fields: list[tuple[str, str]]) -> None:
        """Initialize with list of invalid field names and messages."""
        self.invalid_fields = invalid_fields
        summary = ", ".join(f"{field}: {message}" for field, message in invalid_fields)
        super().__init__(f"Invalid environment variables: {summary}")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required environment variables
    postgres_user: str = Field(..., description="Postgres user (required)")
    postgres_password: str = Field(..., description="Postgres password (required)")
    postgres_host: str = Field(..., description="Postgres host (required)")
    postgres_port: int = Field(..., description="Postgres port (required)")
    postgres_db: str = Field(..., description="Postgres database name (required)")
    redis_host: str = Field(..., description="Redis host (required)")
    redis_port: int = Field(..., description="Redis port (required)")
    redis_db: int = Field(..., description="Redis database number (required)")
    openai_api_key: str = Field(..., description="OpenAI API key used for embeddings (required)")
    ai_encryption_key: str = Field(
        ..., description="Base64 AES key protecting stored provider credentials (required)"
    )
    admin_token: str = Field(..., description="Bearer token for admin endpoints (required)")

    # Database/Redis urls built from components
    database_url: PostgresDsn | None = Field(
        default=None,
        description="Database connection URL",
    )
    redis_url: str | None = Field(
        default=None,
        description="Redis URL for the blob store and AI config",
    )
    rate_limit_storage_url: str | None = Field(
        default=None,
        description="Rate limit storage URL",
    )

    @model_validator(mode="after")
    def build_derived_urls(self) -> Settings:
        """Build URLs from components when missing."""
        if self.database_url is None:
            self.database_url = PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=self.postgres_user,
                password=self.postgres_password,
                host=self.postgres_host,
                port=self.postgres_port,
                path=self.postgres_db,
            )
        if self.redis_url is None:
            self.redis_url = f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"
        if self.rate_limit_storage_url is None:
            self.rate_limit_storage_url = self.redis_url
        return self

    # Optional environment variables (defaults provided)
    app_name: str = "insightflow"
    environment: str = "local"
    log_level: str = "INFO"

    chroma_host: str = "http://localhost:8000"
    chroma_collection: str = "items"
    embedding_model: str = "text-embedding-3-small"

    worker_base_url: str = "http://localhost:8080"
    scheduler_interval_seconds: int = Field(default=300, ge=1)
    scheduler_batch_size: int = Field(default=10, ge=1)
    default_poll_interval_minutes: int = Field(default=360, ge=1)

    fetch_timeout_seconds: float = 30.0
    provider_timeout_seconds: float = 120.0
    # Derived from the other timeouts when unset; see derive_dispatch_timeout.
    dispatch_timeout_seconds: float | None = Field(default=None, gt=0)

    @staticmethod
    def _is_valid_aes_key(value: str) -> bool:
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            return False
        return len(raw) in (16, 24, 32)

    def worst_case_job_seconds(self) -> float:
        """Upper bound on one fetch job: the feed request, then per entry a page
        fetch, an embedding call and a provider call, all sequential.
        """
        per_entry = self.fetch_timeout_seconds + 2 * self.provider_timeout_seconds
        return self.fetch_timeout_seconds + DEFAULT_ENTRY_LIMIT * per_entry

    @model_validator(mode="after")
    def derive_dispatch_timeout(self) -> Settings:
        """The scheduler must not give up on a job the worker is still running."""
        if self.dispatch_timeout_seconds is None:
            self.dispatch_timeout_seconds = self.worst_case_job_seconds()
        return self

    @model_validator(mode="after")
    def validate_encryption_key(self) -> Settings:
        if not self._is_valid_aes_key(self.ai_encryption_key):
            raise ValueError(
                "AI encryption key must be base64 encoding of a 16, 24 or 32 byte key."
            )
        return self


def validate_settings() -> Settings:
    """Validate settings and raise exception for missing required fields.

    Raises:
        MissingRequiredSettingsError: If required environment variables are missing
        InvalidSettingsError: If provided values fail validation
    """
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        missing_fields: list[str] = []
        for error in e.errors():
            if error["type"] == "missing":
                field_name = error["loc"][0] if error["loc"] else "unknown"
                missing_fields.append(str(field_name).upper())

        if missing_fields:
            raise MissingRequiredSettingsError(missing_fields) from e

        invalid_fields: list[tuple[str, str]] = []
        for error in e.errors():
            field_path = ".".join(str(part) for part in error.get("loc", []))
            message = error.get("msg", "Invalid value")
            invalid_fields.append((field_path or "unknown", message))

        if invalid_fields:
            raise InvalidSettingsError(invalid_fields) from e

        raise


# Validate settings at import time.
# Exceptions will propagate to the importing module (e.g., insightflow/main.py)
settings = validate_settings()
