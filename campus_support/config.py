"""
Application Configuration
=========================
Centralised settings via pydantic-settings.
All values are overridable via environment variables or .env file.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


DEFAULT_CRISIS_KEYWORDS: List[str] = [
    "suicide",
    "suicidal",
    "kill myself",
    "killing myself",
    "self harm",
    "self-harm",
    "hurt myself",
    "want to die",
    "end my life",
    "end it all",
    "ending it all",
    "no reason to live",
    "can't go on",
    "hopeless",
    "overdose",
]


class Settings(BaseSettings):
    """Immutable application configuration loaded from environment."""

    # ── Backend API ───────────────────────────────────────────────────────
    API_BASE_URL: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the support backend (system of record)",
    )
    API_TOKEN: str = Field(
        default="",
        description="Bearer token forwarded to the backend; empty disables the header",
    )
    REQUEST_TIMEOUT_SECS: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for ordinary JSON requests",
    )
    UPLOAD_TIMEOUT_SECS: float = Field(
        default=120.0,
        gt=0,
        description="Timeout for multipart attachment uploads",
    )

    # ── Retry / dedupe ────────────────────────────────────────────────────
    MAX_RETRIES: int = Field(
        default=3,
        ge=1,
        description="Attempts per request on connection errors and 5xx responses",
    )
    RETRY_BASE_DELAY_SECS: float = Field(
        default=0.5,
        ge=0.0,
        description="Backoff base delay: 0.5s → 1.0s → 2.0s",
    )
    DEDUPE_WINDOW_SECS: float = Field(
        default=1.0,
        ge=0.0,
        description="Identical GETs inside this window reuse the previous result",
    )

    # ── Caches ────────────────────────────────────────────────────────────
    CACHE_TTL_SECS: float = Field(
        default=300.0,
        ge=0.0,
        description="How long a fetched list stays fresh before a refetch",
    )
    DRAFT_TTL_SECS: int = Field(
        default=3600,
        ge=60,
        description="Idle drafts older than this are discarded",
    )

    # ── Crisis detection ──────────────────────────────────────────────────
    CRISIS_KEYWORDS: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CRISIS_KEYWORDS),
        description="Phrases that flag a ticket description as a crisis (substring match)",
    )
    SYNC_CRISIS_KEYWORDS: bool = Field(
        default=False,
        description="On startup, replace CRISIS_KEYWORDS with the backend's active keywords (needs an admin token)",
    )
    CRISIS_HOTLINE: str = Field(
        default="(555) 123-4567",
        description="Campus crisis hotline shown in the warning banner",
    )
    EMERGENCY_PHONE: str = Field(
        default="911",
        description="Number dialled by the banner's emergency action",
    )

    # ── Attachments ───────────────────────────────────────────────────────
    MAX_ATTACHMENTS: int = Field(
        default=5,
        ge=0,
        description="Maximum files per ticket",
    )
    MAX_ATTACHMENT_BYTES: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum size of a single attachment",
    )

    # ── Server ────────────────────────────────────────────────────────────
    APP_NAME: str = "Campus Support Portal"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOWED_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


# Singleton instance; import this everywhere
settings = Settings()
