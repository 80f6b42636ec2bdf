"""Completion provider interface and LLM initialisation.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` (vLLM, LiteLLM,
   ...).  ``ChatOpenAI`` works unchanged against it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncIterator

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from tenant_rag.config import settings
from tenant_rag.exceptions import CompletionError

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

logger = logging.getLogger(__name__)


class CompletionProvider(ABC):
    """Produces a live sequence of text fragments for a prompt pair.

    The end of the stream is signalled by exhaustion of the iterator.
    Closing the iterator early must stop generation.
    """

    @abstractmethod
    def stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[str]:
        ...


class LangChainCompletionProvider(CompletionProvider):
    """Streams fragments from any LangChain chat model via ``astream``."""

    def __init__(self, llm: BaseChatModel | None = None) -> None:
        self._llm = llm if llm is not None else get_llm()

    async def stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[str]:
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        try:
            async for chunk in self._llm.astream(messages):
                content = chunk.content
                if isinstance(content, str) and content:
                    yield content
        except Exception as exc:
            raise CompletionError(f"completion stream failed: {exc}") from exc


def get_llm(temperature: float = 0.0) -> ChatOpenAI:
    """Return the configured streaming chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    OpenAI-compatible endpoint instead of the OpenAI cloud API.  A dummy
    API key (``"EMPTY"``) is used because such servers often don't
    require authentication.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": temperature,
        "streaming": True,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
