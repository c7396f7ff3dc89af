"""Tests for plugin classification and concurrent execution."""

import asyncio

import pytest

from conftest import ScriptedLLM
from mira.src.core.errors import ErrorKind, OracleUnavailableError
from mira.src.core.plugin_router import (
    FallbackClassifier,
    OracleClassifier,
    PatternClassifier,
    PluginRouter,
    RoutingResult,
)
from mira.src.plugins.base import BasePlugin
from mira.src.plugins.math_plugin import MathPlugin


class _SlowPlugin(BasePlugin):
    name = "slow"
    description = "Never answers in time"

    def matches(self, message: str) -> bool:
        return "slow" in message

    def extract_argument(self, message: str) -> str | None:
        return message

    async def _run(self, argument: str) -> dict:
        await asyncio.sleep(5)
        return {}


class _FixedClassifier:
    def __init__(self, names):
        self.names = names

    async def classify(self, message, plugins):
        return list(self.names)


class TestOracleReplyParsing:
    """OracleClassifier.parse_reply."""

    KNOWN = ["math", "weather"]

    def test_comma_separated(self) -> None:
        assert OracleClassifier.parse_reply("math, weather", self.KNOWN) == ["math", "weather"]

    def test_none(self) -> None:
        assert OracleClassifier.parse_reply("none", self.KNOWN) == []
        assert OracleClassifier.parse_reply("  None\n", self.KNOWN) == []

    def test_unknown_names_and_duplicates_dropped(self) -> None:
        assert OracleClassifier.parse_reply("Math,unknown,math", self.KNOWN) == ["math"]

    def test_quoted_reply(self) -> None:
        assert OracleClassifier.parse_reply('"weather"', self.KNOWN) == ["weather"]


class TestClassifiers:
    """Oracle, pattern and fallback strategies."""

    @pytest.mark.asyncio
    async def test_oracle_uses_model_reply(self, plugins) -> None:
        llm = ScriptedLLM(reply="weather")
        selected = await OracleClassifier(llm).classify("How's Tokyo looking?", plugins)

        assert selected == ["weather"]
        assert "- weather:" in llm.prompts[0]
        assert "How's Tokyo looking?" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_oracle_failure_raises_unavailable(self, plugins) -> None:
        with pytest.raises(OracleUnavailableError):
            await OracleClassifier(ScriptedLLM(fail=True)).classify("2+2", plugins)

    @pytest.mark.asyncio
    async def test_oracle_timeout_raises_unavailable(self, plugins) -> None:
        with pytest.raises(OracleUnavailableError):
            await OracleClassifier(ScriptedLLM(reply="math", delay=1.0), timeout=0.05).classify("2+2", plugins)

    @pytest.mark.asyncio
    async def test_pattern_classifier(self, plugins) -> None:
        selected = await PatternClassifier().classify("What's 2+2 and is it raining in Paris?", plugins)
        assert sorted(selected) == ["math", "weather"]

    @pytest.mark.asyncio
    async def test_fallback_used_when_oracle_unavailable(self, plugins) -> None:
        classifier = FallbackClassifier(OracleClassifier(ScriptedLLM(fail=True)), PatternClassifier())
        assert await classifier.classify("What is 15 + 25?", plugins) == ["math"]

    @pytest.mark.asyncio
    async def test_fallback_not_used_when_oracle_answers(self, plugins) -> None:
        classifier = FallbackClassifier(OracleClassifier(ScriptedLLM(reply="none")), PatternClassifier())
        assert await classifier.classify("What is 15 + 25?", plugins) == []


class TestPluginRouter:
    """Routing results for math, weather, both and neither."""

    @pytest.mark.asyncio
    async def test_math_only(self, plugins) -> None:
        result = await PluginRouter(plugins, PatternClassifier()).route("What is 15 + 25?")

        assert result.plugins_used == frozenset({"math"})
        assert result.results["math"].ok
        assert result.results["math"].outcome.data["result"] == 40

    @pytest.mark.asyncio
    async def test_weather_only(self, plugins) -> None:
        result = await PluginRouter(plugins, PatternClassifier()).route("What's the weather in Tokyo?")

        assert result.plugins_used == frozenset({"weather"})
        assert result.results["weather"].outcome.data["location"] == "Tokyo"

    @pytest.mark.asyncio
    async def test_both_plugins(self, plugins) -> None:
        result = await PluginRouter(plugins, PatternClassifier()).route("What's 2+2 and is it raining in Paris?")

        assert result.plugins_used == frozenset({"math", "weather"})
        assert result.results["math"].outcome.data["result"] == 4
        assert result.results["weather"].outcome.data["location"] == "Paris"

    @pytest.mark.asyncio
    async def test_no_plugins(self, plugins) -> None:
        result = await PluginRouter(plugins, PatternClassifier()).route("Tell me about markdown")
        assert result == RoutingResult()

    @pytest.mark.asyncio
    async def test_selected_plugin_without_argument_fails(self, plugins) -> None:
        result = await PluginRouter(plugins, _FixedClassifier(["math"])).route("Tell me about markdown")

        assert result.plugins_used == frozenset({"math"})
        assert result.results["math"].outcome.kind is ErrorKind.INVALID_EXPRESSION

    @pytest.mark.asyncio
    async def test_unknown_selection_is_ignored(self, plugins) -> None:
        result = await PluginRouter(plugins, _FixedClassifier(["ghost"])).route("anything")
        assert result.plugins_used == frozenset()

    @pytest.mark.asyncio
    async def test_timeout_is_collected_not_raised(self) -> None:
        router = PluginRouter([_SlowPlugin(), MathPlugin()], PatternClassifier(), timeout=0.05)
        result = await router.route("slow 2+2")

        assert result.plugins_used == frozenset({"slow", "math"})
        assert result.results["slow"].outcome.kind is ErrorKind.PLUGIN_TIMEOUT
        assert result.results["math"].ok

    def test_duplicate_plugin_names_rejected(self) -> None:
        with pytest.raises(ValueError):
            PluginRouter([MathPlugin(), MathPlugin()], PatternClassifier())

    def test_describe(self, plugins) -> None:
        catalogue = PluginRouter(plugins, PatternClassifier()).describe()

        assert [tool["name"] for tool in catalogue] == ["weather", "math"]
        assert all(tool["type"] == "plugin" and tool["status"] == "active" for tool in catalogue)
        assert all(tool["capabilities"] for tool in catalogue)
