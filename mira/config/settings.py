"""
Mira - Centralized Configuration
=================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.  The raw value is never exposed in repr,
  logs, or tracebacks.
- ``OPENWEATHER_API_KEY`` is optional ``SecretStr``; it only becomes
  mandatory when ``WEATHER_BACKEND="openweathermap"``.

Backends
--------
Interchangeable implementations are picked here, never by divergent
code paths:

- ``EMBEDDING_BACKEND`` → ``"hashing"`` (offline, deterministic) or
  ``"gemini"`` (``GoogleGenerativeAIEmbeddings``).
- ``WEATHER_BACKEND`` → ``"mock"`` (fixed city table) or
  ``"openweathermap"`` (live HTTP API).
- ``PLUGIN_CLASSIFIER`` → ``"oracle"`` (LLM with pattern fallback) or
  ``"pattern"`` (regex/keyword only).

Concurrency
-----------
``MAX_WORKERS`` controls the ``ThreadPoolExecutor`` pool size used to
embed documents in parallel during indexing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : str | None
        Explicit log level; overrides the ``ENV`` default when set.
    CHUNK_SIZE : int
        Character budget per chunk during indexing.
    SEARCH_RESULTS_LIMIT : int
        Number of chunks retrieved per message (top-K).
    MAX_HISTORY : int
        Hard cap on messages kept per session.
    HISTORY_WINDOW : int
        Messages of history injected into each prompt.
    SESSION_TTL_SECONDS : int
        Idle time after which a session is evicted (``0`` disables).
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DOCUMENTS_DIR: Path = BASE_DIR / "data" / "documents"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── API Keys ───────────────────────────────────────────────────────
    GOOGLE_API_KEY: SecretStr
    OPENWEATHER_API_KEY: SecretStr | None = None

    # ── Language Model ─────────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 1024
    LLM_TIMEOUT_SECONDS: float = 30.0

    # ── Plugin Routing ─────────────────────────────────────────────────
    PLUGIN_CLASSIFIER: Literal["oracle", "pattern"] = "oracle"
    ORACLE_TIMEOUT_SECONDS: float = 10.0
    PLUGIN_TIMEOUT_SECONDS: float = 15.0

    # ── Embeddings ─────────────────────────────────────────────────────
    EMBEDDING_BACKEND: Literal["hashing", "gemini"] = "hashing"
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSION: int = 384

    # ── Indexing & Retrieval ───────────────────────────────────────────
    CHUNK_SIZE: int = 500
    MAX_WORKERS: int = 4
    SEARCH_RESULTS_LIMIT: int = 3

    # ── Session Memory ─────────────────────────────────────────────────
    MAX_HISTORY: int = 10
    HISTORY_WINDOW: int = 2
    SESSION_TTL_SECONDS: int = 3600
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60

    # ── Weather ────────────────────────────────────────────────────────
    WEATHER_BACKEND: Literal["mock", "openweathermap"] = "mock"
    OPENWEATHER_BASE_URL: str = "https://api.openweathermap.org/data/2.5"
    WEATHER_UNITS: str = "metric"
    WEATHER_TIMEOUT_SECONDS: float = 10.0
    DEFAULT_WEATHER_LOCATION: str = "London"

    # ── HTTP Server ────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1–16, got {v}")
        return v


    @field_validator("EMBEDDING_DIMENSION")
    @classmethod
    def _dimension_range(cls, v: int) -> int:
        if not 16 <= v <= 4096:
            raise ValueError(f"EMBEDDING_DIMENSION must be 16–4096, got {v}")
        return v


    @field_validator("MAX_HISTORY", "SEARCH_RESULTS_LIMIT")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("SESSION_TTL_SECONDS", "SESSION_SWEEP_INTERVAL_SECONDS")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be ≥ 0, got {v}")
        return v


    @model_validator(mode="after")
    def _check_cross_field(self) -> "Settings":
        if not 0 < self.HISTORY_WINDOW < self.MAX_HISTORY:
            raise ValueError(f"HISTORY_WINDOW must be between 1 and MAX_HISTORY - 1 ({self.MAX_HISTORY - 1}), got {self.HISTORY_WINDOW}")
        if self.WEATHER_BACKEND == "openweathermap" and self.OPENWEATHER_API_KEY is None:
            raise ValueError("OPENWEATHER_API_KEY is required when WEATHER_BACKEND='openweathermap'")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Module-level Instance ──────────────────────────────────────────────
# Import this throughout the project:
#     from mira.config.settings import settings
settings = Settings()
