"""
Mira - Error Taxonomy
======================
Every failure the core can produce is a ``MiraError`` carrying an
``ErrorKind``.  The kind is what crosses component boundaries: plugins
turn errors into ``Failure(kind, message)`` values, the router
recovers from ``OracleUnavailable``, and the orchestrator converts
``LLMUnavailable`` into an apology reply.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_EXPRESSION = "InvalidExpression"
    DIVISION_BY_ZERO = "DivisionByZero"
    NO_LOCATION_EXTRACTED = "NoLocationExtracted"
    WEATHER_SOURCE_UNAVAILABLE = "WeatherSourceUnavailable"
    LOCATION_NOT_FOUND = "LocationNotFound"
    EMBEDDING_FAILURE = "EmbeddingFailure"
    ORACLE_UNAVAILABLE = "OracleUnavailable"
    LLM_UNAVAILABLE = "LLMUnavailable"
    PLUGIN_TIMEOUT = "PluginTimeout"
    PLUGIN_FAILURE = "PluginFailure"


class MiraError(Exception):
    """Base class for all Mira errors."""

    kind: ErrorKind = ErrorKind.PLUGIN_FAILURE

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


# ── Expression evaluator ───────────────────────────────────────────────

class InvalidExpressionError(MiraError):
    kind = ErrorKind.INVALID_EXPRESSION


class DivisionByZeroError(MiraError):
    kind = ErrorKind.DIVISION_BY_ZERO


# ── Weather plugin ─────────────────────────────────────────────────────

class NoLocationExtractedError(MiraError):
    kind = ErrorKind.NO_LOCATION_EXTRACTED


class WeatherSourceUnavailableError(MiraError):
    kind = ErrorKind.WEATHER_SOURCE_UNAVAILABLE


class LocationNotFoundError(MiraError):
    kind = ErrorKind.LOCATION_NOT_FOUND


# ── Indexing / retrieval ───────────────────────────────────────────────

class EmbeddingFailureError(MiraError):
    """Fatal to the affected document (indexing) or query (retrieval) only."""

    kind = ErrorKind.EMBEDDING_FAILURE


# ── Language model ─────────────────────────────────────────────────────

class OracleUnavailableError(MiraError):
    """Never surfaced to callers; the router falls back to pattern matching."""

    kind = ErrorKind.ORACLE_UNAVAILABLE


class LLMUnavailableError(MiraError):
    kind = ErrorKind.LLM_UNAVAILABLE
