"""Process-wide settings resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """Raised when a required setting is missing or malformed."""


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Settings for the scanner, the mapping engine and the HTTP surface."""

    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    temperature: float = 0.3
    top_p: float = 0.8
    top_k: int = 40
    max_output_tokens: int = 8192
    data_dir: Path = Path("data")
    chunk_threshold: int = 10
    chunk_size: int = 5
    chunk_delay: float = 1.0
    navigation_timeout_ms: int = 60000
    settle_ms: int = 2000
    headless: bool = True
    max_pages: int = 10
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables, reading ``.env`` first."""

        if dotenv:
            load_dotenv()
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            temperature=_env_number("TEMPERATURE", cls.temperature, float),
            top_p=_env_number("TOP_P", cls.top_p, float),
            top_k=_env_number("TOP_K", cls.top_k, int),
            max_output_tokens=_env_number("MAX_OUTPUT_TOKENS", cls.max_output_tokens, int),
            data_dir=Path(os.getenv("AUTOFILL_DATA_DIR", str(cls.data_dir))),
            chunk_threshold=_env_number("AUTOFILL_CHUNK_THRESHOLD", cls.chunk_threshold, int),
            chunk_size=_env_number("AUTOFILL_CHUNK_SIZE", cls.chunk_size, int),
            chunk_delay=_env_number("AUTOFILL_CHUNK_DELAY", cls.chunk_delay, float),
            navigation_timeout_ms=_env_number("AUTOFILL_NAV_TIMEOUT_MS", cls.navigation_timeout_ms, int),
            settle_ms=_env_number("AUTOFILL_SETTLE_MS", cls.settle_ms, int),
            headless=_env_bool("AUTOFILL_HEADLESS", cls.headless),
            max_pages=_env_number("AUTOFILL_MAX_PAGES", cls.max_pages, int),
            host=os.getenv("AUTOFILL_HOST", cls.host),
            port=_env_number("AUTOFILL_PORT", cls.port, int),
            log_level=os.getenv("AUTOFILL_LOG_LEVEL", cls.log_level).upper(),
        )

    def require_api_key(self) -> str:
        if not self.google_api_key:
            raise ConfigurationError(
                "Google API key not found. Set GOOGLE_API_KEY environment variable "
                "or pass api_key parameter."
            )
        return self.google_api_key


__all__ = ["ConfigurationError", "Settings"]
