"""LLM provider protocol, explicit configuration and the provider error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from pva.config import Settings


@dataclass(frozen=True)
class LLMConfig:
    """Everything a provider needs; nothing is read from the environment."""

    provider: str = "openai"
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.1
    max_tokens: int = 1000
    api_key: str | None = None
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMConfig":
        return cls(
            provider=settings.pva_llm_provider.lower(),
            model=settings.llm_model,
            temperature=settings.pva_llm_temperature,
            max_tokens=settings.pva_llm_max_tokens,
            api_key=settings.llm_api_key,
            timeout=settings.pva_llm_timeout,
        )


class LLMError(Exception):
    """Provider failure, already translated out of the vendor SDK."""


class LLMAuthenticationError(LLMError):
    pass


class LLMRateLimitError(LLMError):
    pass


class LLMQuotaError(LLMError):
    pass


class LLMPermissionError(LLMError):
    pass


class LLMTimeoutError(LLMError):
    pass


class LLMConnectionError(LLMError):
    pass


class LLMResponseFormatError(LLMError):
    """The API answered but the envelope had no usable text."""


class LLMAPIError(LLMError):
    pass


class LLMProvider(Protocol):
    """Protocol for chat completion backends (OpenAI, Anthropic)."""

    config: LLMConfig

    def complete(self, system: str, user: str, **kwargs: Any) -> str:
        """Return raw text completion for a system + user message pair.

        Raises an LLMError subclass on failure.
        """
        ...
