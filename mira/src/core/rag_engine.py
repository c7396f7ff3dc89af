"""
Mira - Agent Orchestrator
==========================
Runs one conversational turn end to end.

Pipeline
--------
    1. Fetch history window   → last ``HISTORY_WINDOW`` messages
    2. Record user message    → session store
    3. Route ‖ Retrieve       → plugins (async) and top-K chunks (thread)
    4. Build prompt           → system · history · context · plugins · message
    5. Call the LLM           → ``LanguageModel.generate``
    6. Record reply           → session store
    7. Return ``AgentReply``

Degradation
-----------
Retrieval or routing failures are logged and the turn continues without
that input.  An ``LLMUnavailableError`` (or any other failure) produces
the fixed ``APOLOGY_REPLY``; the apology is *not* written to memory.
``process_message`` never raises.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from mira.config.prompt_templates import (
    AGENT_PROMPT_TEMPLATE,
    APOLOGY_REPLY,
    CONTEXT_SECTION_TEMPLATE,
    HISTORY_SECTION_TEMPLATE,
    MATH_RESULT_LINE,
    NO_HISTORY_PLACEHOLDER,
    PLUGIN_ERROR_LINE,
    PLUGIN_SECTION_TEMPLATE,
    SYSTEM_PROMPT,
    WEATHER_RESULT_LINE,
)
from mira.src.core.errors import EmbeddingFailureError, LLMUnavailableError
from mira.src.core.llm import LanguageModel
from mira.src.core.plugin_router import PluginRouter, RoutingResult
from mira.src.core.retriever import Retriever
from mira.src.database.session_store import Message, SessionStore
from mira.src.database.vector_store import Chunk
from mira.src.plugins.base import PluginResult, Success
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AgentReply:
    reply: str
    session_id: str
    timestamp: datetime
    context_used: list[str] = field(default_factory=list)
    plugins_called: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"reply": self.reply, "session_id": self.session_id, "timestamp": self.timestamp.isoformat(), "context_used": self.context_used, "plugins_called": self.plugins_called}


# ══════════════════════════════════════════════════════════════════════
#  PROMPT FORMATTING
# ══════════════════════════════════════════════════════════════════════


def format_history(messages: Sequence[Message]) -> str:
    """Render chat history as ``User:`` / ``Assistant:`` lines."""
    if not messages:
        return NO_HISTORY_PLACEHOLDER
    return "\n".join(f"{'User' if msg.role == 'user' else 'Assistant'}: {msg.content}" for msg in messages)


def format_context(chunks: Sequence[Chunk]) -> str:
    """Numbered context block, one entry per retrieved chunk."""
    return "\n\n".join(f"{i}. {chunk.content}" for i, chunk in enumerate(chunks, 1))


def format_plugin_result(result: PluginResult) -> str:
    outcome = result.outcome
    if isinstance(outcome, Success):
        data = outcome.data
        if result.plugin_name == "weather":
            return WEATHER_RESULT_LINE.format(**data)
        if result.plugin_name == "math":
            return MATH_RESULT_LINE.format(**data)
        return f"{result.plugin_name} result: {data}"
    return PLUGIN_ERROR_LINE.format(plugin=result.plugin_name, kind=outcome.kind.value, message=outcome.message)


def build_prompt(message: str, history: Sequence[Message], chunks: Sequence[Chunk], plugin_results: Mapping[str, PluginResult]) -> str:
    """
    Assemble the single prompt sent to the language model.

    The context section is omitted when *chunks* is empty and the plugin
    section is omitted unless at least one plugin ran.
    """
    context_section = CONTEXT_SECTION_TEMPLATE.format(context=format_context(chunks)) if chunks else ""
    plugin_section = ""
    if plugin_results:
        plugin_section = PLUGIN_SECTION_TEMPLATE.format(results="\n".join(format_plugin_result(r) for r in plugin_results.values()))

    return AGENT_PROMPT_TEMPLATE.format(
        system=SYSTEM_PROMPT,
        history_section=HISTORY_SECTION_TEMPLATE.format(history=format_history(history)),
        context_section=context_section,
        plugin_section=plugin_section,
        message=message,
    )


# ══════════════════════════════════════════════════════════════════════
#  ORCHESTRATOR
# ══════════════════════════════════════════════════════════════════════


class AgentOrchestrator:
    """
    Owns every collaborator needed for a turn; built once by ``create_app``.

    Parameters
    ----------
    session_store
        Conversation memory.
    retriever
        Knowledge-base search.
    router
        Plugin selection and execution.
    llm
        Reply generator.
    history_window
        Messages of history injected per prompt.
    top_k
        Chunks retrieved per message.
    """

    __slots__ = ("_sessions", "_retriever", "_router", "_llm", "_history_window", "_top_k", "_started_at")

    def __init__(self, session_store: SessionStore, retriever: Retriever, router: PluginRouter, llm: LanguageModel, history_window: int = 2, top_k: int = 3) -> None:
        if not 0 < history_window < session_store.max_history:
            raise ValueError(f"history_window must be between 1 and {session_store.max_history - 1}, got {history_window}")
        self._sessions = session_store
        self._retriever = retriever
        self._router = router
        self._llm = llm
        self._history_window = history_window
        self._top_k = top_k
        self._started_at = datetime.now(timezone.utc)


    async def process_message(self, session_id: str, text: str) -> AgentReply:
        t_start = time.perf_counter()
        timestamp = datetime.now(timezone.utc)
        chunks: list[Chunk] = []
        routing = RoutingResult()

        try:
            # ── 1–2. History window, then record the user turn ────────
            # The window excludes the current message; it has its own prompt section.
            history = await self._sessions.recent(session_id, self._history_window)
            await self._sessions.add_message(session_id, "user", text)

            # ── 3. Plugins and retrieval concurrently ─────────────────
            t_gather = time.perf_counter()
            routing, chunks = await asyncio.gather(self._route(text), self._retrieve(text))
            gather_ms = (time.perf_counter() - t_gather) * 1000
            logger.info("[RAG] Context: %d chunk(s), plugins=%s in %.1fms", len(chunks), sorted(routing.plugins_used), gather_ms)

            # ── 4–5. Prompt + LLM ─────────────────────────────────────
            prompt = build_prompt(text, history, chunks, routing.results)
            t_llm = time.perf_counter()
            reply = await self._llm.generate(prompt)
            llm_ms = (time.perf_counter() - t_llm) * 1000

            # ── 6. Record the reply ───────────────────────────────────
            await self._sessions.add_message(session_id, "assistant", reply)

        except LLMUnavailableError as exc:
            logger.error("[RAG] LLM unavailable for session '%s': %s", session_id, exc.message)
            return self._reply(APOLOGY_REPLY, session_id, timestamp, chunks, routing)
        except Exception:
            logger.exception("[RAG] Unrecoverable error for session '%s'.", session_id)
            return self._reply(APOLOGY_REPLY, session_id, timestamp, chunks, routing)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (context=%.1f, llm=%.1f)", total_ms, gather_ms, llm_ms)
        return self._reply(reply, session_id, timestamp, chunks, routing)


    async def _route(self, text: str) -> RoutingResult:
        try:
            return await self._router.route(text)
        except Exception:
            logger.exception("[RAG] Plugin routing failed — continuing without plugins.")
            return RoutingResult()


    async def _retrieve(self, text: str) -> list[Chunk]:
        try:
            return await asyncio.to_thread(self._retriever.retrieve, text, self._top_k)
        except EmbeddingFailureError as exc:
            logger.warning("[RAG] Retrieval failed — continuing without context: %s", exc.message)
        except Exception:
            logger.exception("[RAG] Retrieval failed — continuing without context.")
        return []


    @staticmethod
    def _reply(reply: str, session_id: str, timestamp: datetime, chunks: Sequence[Chunk], routing: RoutingResult) -> AgentReply:
        return AgentReply(reply=reply, session_id=session_id, timestamp=timestamp, context_used=[chunk.id for chunk in chunks], plugins_called=sorted(routing.plugins_used))

    # ══════════════════════════════════════════════════════════════════
    #  INTROSPECTION
    # ══════════════════════════════════════════════════════════════════

    def stats(self) -> dict[str, Any]:
        return {"knowledge_base_chunks": self._retriever.chunk_count, "active_sessions": self._sessions.session_count(), "plugins": [plugin.name for plugin in self._router.plugins]}


    def tools(self) -> list[dict[str, Any]]:
        return self._router.describe()


    def health(self) -> dict[str, Any]:
        return {
            "knowledge_base": {"status": "ready", "chunks": self._retriever.chunk_count},
            "sessions": {"status": "ready", "active": self._sessions.session_count()},
            "plugins": {plugin.name: "active" for plugin in self._router.plugins},
            "llm": type(self._llm).__name__,
            "started_at": self._started_at.isoformat(),
        }


    async def history(self, session_id: str) -> list[dict[str, str]]:
        return [message.to_dict() for message in await self._sessions.history(session_id)]


    async def clear_session(self, session_id: str) -> bool:
        return await self._sessions.clear(session_id)
