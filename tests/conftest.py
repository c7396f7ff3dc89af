"""Shared fixtures and test doubles.

Settings are loaded at import time, so the dummy key must be in the
environment before any ``mira`` module is imported.
"""

import asyncio
import os

os.environ.setdefault("GOOGLE_API_KEY", "test-key")
os.environ.setdefault("DEFAULT_WEATHER_LOCATION", "London")
os.environ.setdefault("WEATHER_BACKEND", "mock")

import pytest

from mira.src.core.embeddings import HashingEmbedder
from mira.src.core.errors import LLMUnavailableError
from mira.src.core.ingestor import IngestionPipeline
from mira.src.core.plugin_router import PatternClassifier, PluginRouter
from mira.src.core.rag_engine import AgentOrchestrator
from mira.src.core.retriever import Retriever
from mira.src.database.session_store import SessionStore
from mira.src.database.vector_store import InMemoryVectorStore
from mira.src.plugins.math_plugin import MathPlugin
from mira.src.plugins.weather_plugin import MockWeatherSource, WeatherPlugin, WeatherReport

DIMENSION = 128

SAMPLE_DOCUMENTS = [
    (
        "weather-guide.md",
        "# Weather Guide\n\nThe weather plugin reports temperature, humidity and wind speed for a city.\n\n"
        "Forecasts are not supported; only current conditions are available.",
    ),
    (
        "markdown-tips.md",
        "# Markdown Tips\n\nMarkdown headings start with hash characters.\n\n"
        "Emphasis uses asterisks and inline code uses backticks.",
    ),
    (
        "cooking.md",
        "# Cooking\n\nPasta should be boiled in salted water until al dente.",
    ),
]


# ── Test doubles ───────────────────────────────────────────────────────

class ScriptedLLM:
    """Records every prompt; replies with *reply* (str or callable) or fails."""

    def __init__(self, reply="Scripted reply.", fail=False, delay=0.0):
        self.reply = reply
        self.fail = fail
        self.delay = delay
        self.prompts = []

    async def generate(self, system_prompt, history=()):
        self.prompts.append(system_prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise LLMUnavailableError("scripted failure")
        return self.reply(system_prompt) if callable(self.reply) else self.reply


class FailingEmbedder:
    """Raises for any text containing ``marker``; hashes everything else."""

    def __init__(self, marker="FAIL", dimension=DIMENSION):
        self.marker = marker
        self._inner = HashingEmbedder(dimension)

    def embed_documents(self, texts):
        if any(self.marker in text for text in texts):
            raise RuntimeError("embedding service exploded")
        return self._inner.embed_documents(texts)

    def embed_query(self, text):
        if self.marker in text:
            raise RuntimeError("embedding service exploded")
        return self._inner.embed_query(text)


class FakeWeatherSource:
    """Returns a fixed report or raises ``error``; records every lookup."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def fetch_weather(self, location, units="metric"):
        self.calls.append((location, units))
        if self.error is not None:
            raise self.error
        return WeatherReport(location=location, temperature=21, description="Sunny", humidity=40, wind_speed=2.5)


# ── Fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def embedder():
    return HashingEmbedder(DIMENSION)


@pytest.fixture
def indexed_store(embedder):
    store = InMemoryVectorStore()
    pipeline = IngestionPipeline(embedder, store, chunk_size=200, max_workers=2)
    store.replace(pipeline.index_corpus(SAMPLE_DOCUMENTS))
    return store


@pytest.fixture
def plugins():
    return [WeatherPlugin(MockWeatherSource(), default_location="London"), MathPlugin()]


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def session_store():
    return SessionStore(max_history=10)


@pytest.fixture
def orchestrator(embedder, indexed_store, plugins, llm, session_store):
    return AgentOrchestrator(
        session_store=session_store,
        retriever=Retriever(embedder, indexed_store),
        router=PluginRouter(plugins, PatternClassifier(), timeout=5.0),
        llm=llm,
        history_window=2,
        top_k=3,
    )
