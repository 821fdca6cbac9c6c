"""
config.py – Central settings for the Progressive Learning coach
================================================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and fill in your values.

Live mode activates automatically when either the Azure OpenAI pair
(AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY) or OPENAI_API_KEY holds a
real (non-placeholder) value.  Otherwise every generator call degrades to
the static fallback scenarios and feedback.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from rich.logging import RichHandler

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return not value or "<" in value or value.startswith("your-") or value == "PLACEHOLDER"


# ─── Azure OpenAI ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AzureOpenAIConfig:
    endpoint:    str
    api_key:     str
    deployment:  str
    api_version: str

    @property
    def is_configured(self) -> bool:
        """True when both endpoint and key are real (non-placeholder) values."""
        return (
            bool(self.endpoint)
            and bool(self.api_key)
            and not _is_placeholder(self.endpoint)
            and not _is_placeholder(self.api_key)
        )


# ─── OpenAI (public API) ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class OpenAIConfig:
    api_key: str
    model:   str

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and not _is_placeholder(self.api_key)


# ─── Generation parameters ───────────────────────────────────────────────────

@dataclass(frozen=True)
class GenerationConfig:
    temperature:     float
    max_tokens:      int
    timeout_seconds: float   # per request; a timeout counts as a failed call
    max_retries:     int


# ─── Persistence ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StorageConfig:
    db_path: str


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    force_mock_mode: bool
    log_level:       str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    azure:      AzureOpenAIConfig
    openai:     OpenAIConfig
    generation: GenerationConfig
    storage:    StorageConfig
    app:        AppConfig

    @property
    def live_mode(self) -> bool:
        """True when any generator credentials are real and FORCE_MOCK_MODE is false."""
        return (self.azure.is_configured or self.openai.is_configured) and not self.app.force_mock_mode

    def status_summary(self) -> dict[str, str]:
        """Return a dict of service → status badge for the UI."""
        def badge(ok: bool) -> str:
            return "🟢 Live" if ok else "⚪ Not configured"

        return {
            "Azure OpenAI":     badge(self.azure.is_configured),
            "OpenAI":           badge(self.openai.is_configured),
            "Generator mode":   "🟢 Live" if self.live_mode else "🟡 Fallback templates",
            "Memory store":     self.storage.db_path,
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str   = lambda k, d="": os.getenv(k, d).strip()
    _int   = lambda k, d=0: int(os.getenv(k, str(d)) or d)
    _float = lambda k, d=0.0: float(os.getenv(k, str(d)) or d)
    _bool  = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    return Settings(
        azure=AzureOpenAIConfig(
            endpoint    = _str("AZURE_OPENAI_ENDPOINT").rstrip("/"),
            api_key     = _str("AZURE_OPENAI_API_KEY"),
            deployment  = _str("AZURE_OPENAI_DEPLOYMENT", "gpt-4o"),
            api_version = _str("AZURE_OPENAI_API_VERSION", "2024-12-01-preview"),
        ),
        openai=OpenAIConfig(
            api_key = _str("OPENAI_API_KEY"),
            model   = _str("OPENAI_MODEL", "gpt-4o-mini"),
        ),
        generation=GenerationConfig(
            temperature     = _float("LLM_TEMPERATURE", 0.7),
            max_tokens      = _int("LLM_MAX_TOKENS", 1500),
            timeout_seconds = _float("LLM_TIMEOUT_SECONDS", 30.0),
            max_retries     = _int("LLM_MAX_RETRIES", 1),
        ),
        storage=StorageConfig(
            db_path = _str("PROGRESSIVE_DB_PATH", "progressive_learning.db"),
        ),
        app=AppConfig(
            force_mock_mode = _bool("FORCE_MOCK_MODE", False),
            log_level       = _str("LOG_LEVEL", "INFO").upper(),
        ),
    )


def configure_logging(level: str | None = None) -> None:
    """Route the package loggers through Rich.  Safe to call more than once."""
    level = level or get_settings().app.log_level
    root = logging.getLogger("progressive_learning")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
