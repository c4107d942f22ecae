"""Application configuration."""

import os
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

EXTRACTION_BACKENDS = {"rules", "http", "openai"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    extraction_backend: str = "rules"
    extraction_url: str | None = None
    extraction_api_key: str | None = None
    extraction_timeout_seconds: float = 15.0
    openai_api_key: str | None = None
    openai_model: str = "gpt-5.2"
    timezone: str = "UTC"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    data_dir: str = ".data"
    api_token: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def tz(self) -> ZoneInfo:
        """Return the configured local timezone."""
        return ZoneInfo(self.timezone)

    @property
    def uses_supabase(self) -> bool:
        """Return whether durable storage goes to Supabase."""
        return bool(self.supabase_url and self.supabase_service_key)


def resolve_backend(settings: Settings) -> str:
    """Return the extraction backend that can actually be used.

    A backend selected without its credentials counts as unconfigured and
    resolves to ``"rules"``.
    """
    backend = settings.extraction_backend.strip().lower()
    if backend not in EXTRACTION_BACKENDS:
        return "rules"
    if backend == "http" and not settings.extraction_url:
        return "rules"
    if backend == "openai" and not settings.openai_api_key:
        return "rules"
    return backend
