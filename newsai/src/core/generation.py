"""
NewsAI - Generation Client
===========================
Wraps the Gemini chat model (``ChatGoogleGenerativeAI``) behind a
one-method async interface so the orchestrator can be tested with any
stand-in that exposes ``generate(prompt) -> str``.

Timeouts and retries are *not* handled here; the orchestrator owns that
policy.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage

from newsai.config.prompt_templates import SYSTEM_PROMPT
from newsai.config.settings import settings
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a prompt into free text."""

    async def generate(self, prompt: str) -> str: ...


class GeminiGenerator:
    """
    ``TextGenerator`` backed by a LangChain chat model.

    Parameters
    ----------
    llm
        Pre-built chat model.  When omitted, a ``ChatGoogleGenerativeAI``
        is created from settings.
    system_prompt
        Prepended as a ``SystemMessage`` on every call.
    """

    __slots__ = ("_llm", "_system_prompt")

    def __init__(self, llm: Any | None = None, system_prompt: str = SYSTEM_PROMPT) -> None:
        self._llm = llm or self._init_llm()
        self._system_prompt = system_prompt


    @staticmethod
    def _init_llm() -> Any:
        """Initialise the Gemini LLM via LangChain."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value(), max_retries=0)
        logger.info("[GENERATION] LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
        return llm


    async def generate(self, prompt: str) -> str:
        messages = [SystemMessage(content=self._system_prompt), HumanMessage(content=prompt)]
        response = await self._llm.ainvoke(messages)
        content = response.content if hasattr(response, "content") else response
        if isinstance(content, list):
            # Multi-part responses arrive as a list of text / dict parts.
            content = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        return str(content)
