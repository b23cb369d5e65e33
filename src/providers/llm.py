"""Completion backends for the AI content tools.

Caption and scheduling prompts are sent through one of:
- OpenAI (llama-index)
- Azure OpenAI deployments (llama-index)
- an in-process mock for tests and offline runs

The LLM only ever sees the prompt text it is given; it has no access to
the registry or to provider credentials.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from shared.config import LLMSettings
from shared.logging import get_logger
from shared.models import LLMResponse, PromptMessage

logger = get_logger(__name__)


class LLMProvider(ABC):
    """Chat completion backend used by the content assistant."""

    @abstractmethod
    async def complete(
        self,
        messages: list[PromptMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Complete a system + user prompt pair.

        Args:
            messages: Prompt messages, system message first
            temperature: Overrides the configured temperature
            max_tokens: Overrides the configured completion budget

        Returns:
            The completion text and finish reason
        """
        pass


class LlamaIndexProvider(LLMProvider):
    """Shared completion logic for LlamaIndex-backed providers."""

    def __init__(self, settings: LLMSettings) -> None:
        self.settings = settings
        self._llm = None

    @property
    def api_key(self) -> Optional[str]:
        return self.settings.api_key.get_secret_value() if self.settings.api_key else None

    @abstractmethod
    def _get_llm(self):
        """Lazy initialization of the LlamaIndex LLM."""
        pass

    def _convert_messages(self, messages: list[PromptMessage]) -> list:
        """Convert prompt messages to LlamaIndex format."""
        from llama_index.core.llms import ChatMessage, MessageRole

        role_map = {
            "user": MessageRole.USER,
            "assistant": MessageRole.ASSISTANT,
            "system": MessageRole.SYSTEM,
        }
        return [
            ChatMessage(role=role_map.get(msg.role, MessageRole.USER), content=msg.content)
            for msg in messages
        ]

    async def complete(
        self,
        messages: list[PromptMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        llm = self._get_llm()
        chat_messages = self._convert_messages(messages)

        # Per-call overrides
        overrides: dict[str, Any] = {}
        if temperature is not None:
            overrides["temperature"] = temperature
        if max_tokens is not None:
            overrides["max_tokens"] = max_tokens

        try:
            response = await llm.achat(chat_messages, **overrides)
        except Exception as e:
            logger.error("LLM completion failed", provider=self.settings.provider, error=str(e))
            raise

        return LLMResponse(
            content=response.message.content if response.message else None,
            finish_reason="stop",
            usage={},  # LlamaIndex may not provide usage info
        )


class AzureOpenAIProvider(LlamaIndexProvider):
    """Azure OpenAI deployment; `deployment_name` falls back to the model name."""

    def _get_llm(self):
        if self._llm is None:
            from llama_index.llms.azure_openai import AzureOpenAI

            self._llm = AzureOpenAI(
                engine=self.settings.deployment_name or self.settings.model,
                model=self.settings.model,
                api_key=self.api_key,
                azure_endpoint=self.settings.api_base,
                api_version=self.settings.api_version,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        return self._llm


class OpenAIProvider(LlamaIndexProvider):
    """OpenAI chat model."""

    def _get_llm(self):
        if self._llm is None:
            from llama_index.llms.openai import OpenAI

            self._llm = OpenAI(
                model=self.settings.model,
                api_key=self.api_key,
                api_base=self.settings.api_base,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        return self._llm


class MockLLMProvider(LLMProvider):
    """
    Offline backend that replays queued replies.

    Without a queued reply it answers with plain prose, which exercises
    the content assistant's non-JSON fallback.
    """

    DEFAULT_REPLY = "Mock completion for offline runs."

    def __init__(self, settings: Optional[LLMSettings] = None) -> None:
        self.settings = settings
        self.call_history: list[dict[str, Any]] = []
        self._queued: Optional[LLMResponse] = None
        self._failure: Optional[Exception] = None

    def set_next_response(self, response: LLMResponse) -> None:
        """Queue the reply for the next completion."""
        self._queued = response

    def set_next_error(self, error: Exception) -> None:
        """Make the next completion raise ``error``."""
        self._failure = error

    async def complete(
        self,
        messages: list[PromptMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        self.call_history.append(
            {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        )

        if self._failure is not None:
            error, self._failure = self._failure, None
            raise error

        if self._queued is not None:
            reply, self._queued = self._queued, None
            return reply

        return LLMResponse(content=self.DEFAULT_REPLY, usage={"prompt_tokens": 0, "completion_tokens": 0})


BACKENDS: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "azure_openai": AzureOpenAIProvider,
    "mock": MockLLMProvider,
}


def create_llm_provider(settings: LLMSettings) -> LLMProvider:
    """
    Build the completion backend named by ``settings.provider``.

    Raises:
        ValueError: If the name is not one of ``BACKENDS``
    """
    backend = BACKENDS.get(settings.provider)
    if backend is None:
        raise ValueError(
            f"Unsupported LLM provider: {settings.provider}. "
            f"Choose one of: {', '.join(BACKENDS)}"
        )

    logger.info("LLM backend selected", provider=settings.provider, model=settings.model)
    return backend(settings)
