"""
Mira - Plugin Router
=====================
Decides which plugins apply to a message and runs them concurrently.

Architecture
------------
``PluginClassifier`` (strategy)
    ``OracleClassifier``   — asks the language model; raises
                             ``OracleUnavailableError`` on any failure.
    ``PatternClassifier``  — each plugin's own ``matches()``.
    ``FallbackClassifier`` — primary → fallback on ``OracleUnavailableError``.

``PluginRouter``
    classify → extract arguments → ``asyncio.gather`` every selected
    plugin under its own timeout → ``RoutingResult``.  Failures are
    collected, never raised.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable

from mira.config.prompt_templates import PLUGIN_ROUTER_PROMPT
from mira.config.settings import Settings
from mira.src.core.errors import ErrorKind, LLMUnavailableError, OracleUnavailableError
from mira.src.core.llm import LanguageModel
from mira.src.plugins.base import BasePlugin, PluginResult, log_invocation
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RoutingResult:
    plugins_used: frozenset[str] = frozenset()
    results: dict[str, PluginResult] = field(default_factory=dict)


# ══════════════════════════════════════════════════════════════════════
#  CLASSIFIERS
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class PluginClassifier(Protocol):
    async def classify(self, message: str, plugins: Sequence[BasePlugin]) -> list[str]: ...


class OracleClassifier:
    """Language-model plugin selection; parses ``"math,weather"`` or ``"none"``."""

    __slots__ = ("_llm", "_timeout")

    def __init__(self, llm: LanguageModel, timeout: float = 10.0) -> None:
        self._llm = llm
        self._timeout = timeout


    async def classify(self, message: str, plugins: Sequence[BasePlugin]) -> list[str]:
        descriptions = "\n".join(f"- {plugin.name}: {plugin.description}" for plugin in plugins)
        prompt = PLUGIN_ROUTER_PROMPT.format(plugin_descriptions=descriptions, query=message)

        try:
            reply = await asyncio.wait_for(self._llm.generate(prompt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise OracleUnavailableError(f"Oracle timed out after {self._timeout:g}s") from exc
        except LLMUnavailableError as exc:
            raise OracleUnavailableError(exc.message) from exc
        except Exception as exc:
            raise OracleUnavailableError(f"Oracle call failed: {exc}") from exc

        return self.parse_reply(reply, [plugin.name for plugin in plugins])


    @staticmethod
    def parse_reply(reply: str, known: Iterable[str]) -> list[str]:
        """Keep known names only, first occurrence wins; ``none`` → ``[]``."""
        known_names = set(known)
        text = reply.strip().strip('"').strip().lower()
        if not text or text == "none":
            return []

        selected: list[str] = []
        for name in text.split(","):
            name = name.strip().strip('"').strip()
            if name in known_names and name not in selected:
                selected.append(name)
        return selected


class PatternClassifier:
    """Deterministic selection from each plugin's ``matches()``."""

    async def classify(self, message: str, plugins: Sequence[BasePlugin]) -> list[str]:
        return [plugin.name for plugin in plugins if plugin.matches(message)]


class FallbackClassifier:
    """Run *primary*; on ``OracleUnavailableError`` log and use *fallback*."""

    __slots__ = ("_primary", "_fallback")

    def __init__(self, primary: PluginClassifier, fallback: PluginClassifier) -> None:
        self._primary = primary
        self._fallback = fallback


    async def classify(self, message: str, plugins: Sequence[BasePlugin]) -> list[str]:
        try:
            return await self._primary.classify(message, plugins)
        except OracleUnavailableError as exc:
            logger.warning("[ROUTER] Oracle unavailable (%s) — falling back to pattern matching.", exc.message)
            return await self._fallback.classify(message, plugins)


def build_classifier(config: Settings, llm: LanguageModel) -> PluginClassifier:
    """Strategy named by ``PLUGIN_CLASSIFIER``."""
    if config.PLUGIN_CLASSIFIER == "pattern":
        return PatternClassifier()
    return FallbackClassifier(OracleClassifier(llm, timeout=config.ORACLE_TIMEOUT_SECONDS), PatternClassifier())


# ══════════════════════════════════════════════════════════════════════
#  ROUTER
# ══════════════════════════════════════════════════════════════════════


class PluginRouter:
    """
    Parameters
    ----------
    plugins
        Registered plugins; names must be unique.
    classifier
        Selection strategy.
    timeout
        Seconds allowed per plugin execution.
    """

    __slots__ = ("_plugins", "_classifier", "_timeout")

    def __init__(self, plugins: Sequence[BasePlugin], classifier: PluginClassifier, timeout: float = 15.0) -> None:
        names = [plugin.name for plugin in plugins]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate plugin names: {names}")
        self._plugins: dict[str, BasePlugin] = {plugin.name: plugin for plugin in plugins}
        self._classifier = classifier
        self._timeout = timeout


    @property
    def plugins(self) -> list[BasePlugin]:
        return list(self._plugins.values())


    async def route(self, message: str) -> RoutingResult:
        t_start = time.perf_counter()
        selected = await self._classifier.classify(message, self.plugins)
        selected = [name for name in dict.fromkeys(selected) if name in self._plugins]
        if not selected:
            logger.info("[ROUTER] No plugins selected.")
            return RoutingResult()

        logger.info("[ROUTER] Selected plugins: %s", selected)
        results = await asyncio.gather(*(self._run_plugin(self._plugins[name], message) for name in selected))

        logger.info("[ROUTER] %d plugin(s) finished in %.1fms.", len(results), (time.perf_counter() - t_start) * 1000)
        return RoutingResult(plugins_used=frozenset(selected), results={result.plugin_name: result for result in results})


    async def _run_plugin(self, plugin: BasePlugin, message: str) -> PluginResult:
        t_start = time.perf_counter()
        argument = ""
        try:
            argument = plugin.extract_argument(message) or ""
            if not argument:
                result = PluginResult.failure(plugin.name, plugin.missing_argument_kind, f"No {plugin.name} argument could be extracted from the message")
                log_invocation(plugin.name, argument, result)
                return result
            return await asyncio.wait_for(plugin.execute(argument), timeout=self._timeout)
        except asyncio.TimeoutError:
            result = PluginResult.failure(plugin.name, ErrorKind.PLUGIN_TIMEOUT, f"{plugin.name} plugin timed out after {self._timeout:g}s", (time.perf_counter() - t_start) * 1000)
        except Exception as exc:
            logger.exception("[ROUTER] Plugin '%s' raised past its boundary.", plugin.name)
            result = PluginResult.failure(plugin.name, ErrorKind.PLUGIN_FAILURE, f"{plugin.name} plugin failed: {exc}", (time.perf_counter() - t_start) * 1000)

        log_invocation(plugin.name, argument, result)
        return result


    def describe(self) -> list[dict[str, Any]]:
        return [plugin.describe() for plugin in self._plugins.values()]
