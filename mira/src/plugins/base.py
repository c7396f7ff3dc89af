"""
Mira - Plugin Contract
=======================
Every tool plugin shares one contract::

    await plugin.execute(argument) -> PluginResult

``execute`` never raises: any ``MiraError`` raised by ``_run`` becomes
``Failure(kind, message)``, and anything unexpected becomes
``Failure(PluginFailure, …)``.  Each invocation emits one structured
``[TOOL]`` log record (name, argument, success, latency).

Subclasses provide:
    • ``name`` / ``description`` / ``capabilities`` — catalogue data
      (also fed to the oracle classifier).
    • ``matches(message)`` — pattern-based applicability.
    • ``extract_argument(message)`` — argument for ``execute``.
    • ``_run(argument)`` — the actual work, returning the payload dict.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from mira.src.core.errors import ErrorKind, MiraError
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)

PluginPayload = dict[str, Any]


# ══════════════════════════════════════════════════════════════════════
#  RESULT TYPES (tagged union)
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Success:
    data: PluginPayload


@dataclass(frozen=True, slots=True)
class Failure:
    kind: ErrorKind
    message: str


@dataclass(frozen=True, slots=True)
class PluginResult:
    plugin_name: str
    outcome: Success | Failure
    latency_ms: float = field(default=0.0, compare=False)

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Success)

    @classmethod
    def success(cls, plugin_name: str, data: PluginPayload, latency_ms: float = 0.0) -> "PluginResult":
        return cls(plugin_name, Success(data), latency_ms)

    @classmethod
    def failure(cls, plugin_name: str, kind: ErrorKind, message: str, latency_ms: float = 0.0) -> "PluginResult":
        return cls(plugin_name, Failure(kind, message), latency_ms)


# ══════════════════════════════════════════════════════════════════════
#  BASE PLUGIN
# ══════════════════════════════════════════════════════════════════════


class BasePlugin(ABC):
    """Template for tool plugins; see module docstring for the contract."""

    name: ClassVar[str]
    description: ClassVar[str]
    capabilities: ClassVar[tuple[str, ...]] = ()
    missing_argument_kind: ClassVar[ErrorKind] = ErrorKind.PLUGIN_FAILURE

    @abstractmethod
    def matches(self, message: str) -> bool: ...

    @abstractmethod
    def extract_argument(self, message: str) -> str | None: ...

    @abstractmethod
    async def _run(self, argument: str) -> PluginPayload: ...


    async def execute(self, argument: str) -> PluginResult:
        t_start = time.perf_counter()
        try:
            payload = await self._run(argument)
            result = PluginResult.success(self.name, payload, _elapsed_ms(t_start))
        except MiraError as exc:
            result = PluginResult.failure(self.name, exc.kind, exc.message, _elapsed_ms(t_start))
        except Exception as exc:
            logger.exception("[TOOL] %s raised unexpectedly.", self.name)
            result = PluginResult.failure(self.name, ErrorKind.PLUGIN_FAILURE, f"{self.name} plugin failed: {exc}", _elapsed_ms(t_start))

        log_invocation(self.name, argument, result)
        return result


    def describe(self) -> dict[str, Any]:
        """Catalogue entry for the tools endpoint."""
        return {"name": self.name, "description": self.description, "type": "plugin", "status": "active", "capabilities": list(self.capabilities)}


    def __repr__(self) -> str:
        return f"{type(self).__name__}(name='{self.name}')"


def log_invocation(tool_name: str, argument: str, result: PluginResult) -> None:
    """Emit the structured per-invocation record."""
    record = {"tool": tool_name, "argument": argument, "success": result.ok, "latency_ms": round(result.latency_ms, 1)}
    if result.ok:
        logger.info("[TOOL] %s", record, extra={"tool_invocation": record})
    else:
        logger.warning("[TOOL] %s error=%s", record, result.outcome.kind.value, extra={"tool_invocation": record})  # type: ignore[union-attr]


def _elapsed_ms(t_start: float) -> float:
    return (time.perf_counter() - t_start) * 1000
