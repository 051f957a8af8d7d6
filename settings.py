"""Environment-driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing."""


@dataclass(frozen=True)
class Settings:
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    api_version: str = "2023-07-31"
    generic_model_id: str = "prebuilt-read"
    poll_interval: float = 1.0
    timeout: float = 120.0
    profiles_dir: Optional[str] = None
    log_level: str = "INFO"

    def require_service(self) -> None:
        if not self.endpoint or not self.api_key:
            raise ConfigurationError(
                "Document Intelligence configuration is missing. "
                "Set DOCINTEL_ENDPOINT and DOCINTEL_API_KEY environment variables."
            )


def _env(name: str, legacy: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if not value and legacy:
        value = os.getenv(legacy)
    return value or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        endpoint=_env("DOCINTEL_ENDPOINT", "AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT"),
        api_key=_env("DOCINTEL_API_KEY", "AZURE_DOCUMENT_INTELLIGENCE_API_KEY"),
        api_version=os.getenv("DOCINTEL_API_VERSION", "2023-07-31"),
        generic_model_id=os.getenv("DOCINTEL_GENERIC_MODEL", "prebuilt-read"),
        poll_interval=float(os.getenv("DOCINTEL_POLL_INTERVAL", "1.0")),
        timeout=float(os.getenv("DOCINTEL_TIMEOUT", "120")),
        profiles_dir=_env("DOCINTEL_PROFILES_DIR"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def reload_settings() -> Settings:
    """Drop the cached settings and re-read the environment (useful for tests)."""
    get_settings.cache_clear()
    return get_settings()
