"""
Mira - Language Model
======================
One async text-completion interface for both the final reply and the
oracle classifier::

    await llm.generate(prompt, history=()) -> str

``GeminiLanguageModel`` wraps LangChain's ``ChatGoogleGenerativeAI``.
Every failure (timeout, transport, empty reply) is raised as
``LLMUnavailableError``; callers decide how to degrade.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol, Sequence, runtime_checkable

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from mira.config.settings import Settings
from mira.src.core.errors import LLMUnavailableError
from mira.src.database.session_store import Message
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class LanguageModel(Protocol):
    async def generate(self, system_prompt: str, history: Sequence[Message] = ()) -> str: ...


class GeminiLanguageModel:
    """
    Parameters
    ----------
    chat_model
        A LangChain chat model exposing ``ainvoke`` (normally
        ``ChatGoogleGenerativeAI``).
    timeout
        Seconds allowed per call.
    """

    __slots__ = ("_chat", "_timeout")

    def __init__(self, chat_model: object, timeout: float = 30.0) -> None:
        self._chat = chat_model
        self._timeout = timeout


    @classmethod
    def from_settings(cls, config: Settings) -> "GeminiLanguageModel":
        from langchain_google_genai import ChatGoogleGenerativeAI

        chat = ChatGoogleGenerativeAI(model=config.LLM_MODEL, temperature=config.LLM_TEMPERATURE, max_output_tokens=config.LLM_MAX_TOKENS, google_api_key=config.GOOGLE_API_KEY.get_secret_value())
        logger.info("LLM initialised: %s (temperature=%.1f)", config.LLM_MODEL, config.LLM_TEMPERATURE)
        return cls(chat, timeout=config.LLM_TIMEOUT_SECONDS)


    async def generate(self, system_prompt: str, history: Sequence[Message] = ()) -> str:
        messages = self._to_messages(system_prompt, history)

        t_llm = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._chat.ainvoke(messages), timeout=self._timeout)  # type: ignore[attr-defined]
        except asyncio.TimeoutError as exc:
            raise LLMUnavailableError(f"Language model timed out after {self._timeout:g}s") from exc
        except Exception as exc:
            raise LLMUnavailableError(f"Language model call failed: {exc}") from exc

        text = _content_text(getattr(response, "content", response))
        if not text.strip():
            raise LLMUnavailableError("Language model returned an empty reply")

        logger.debug("LLM response: %.1fms (%d chars)", (time.perf_counter() - t_llm) * 1000, len(text))
        return text.strip()


    @staticmethod
    def _to_messages(system_prompt: str, history: Sequence[Message]) -> list[BaseMessage]:
        # Gemini requires at least one user turn; a lone prompt is sent as one.
        if not history:
            return [HumanMessage(content=system_prompt)]
        turns: list[BaseMessage] = [SystemMessage(content=system_prompt)]
        for message in history:
            turns.append(HumanMessage(content=message.content) if message.role == "user" else AIMessage(content=message.content))
        return turns


def _content_text(content: object) -> str:
    """Flatten LangChain message content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part if isinstance(part, str) else part.get("text", "") for part in content if isinstance(part, (str, dict))]
        return "".join(parts)
    return str(content)
