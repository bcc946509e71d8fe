"""Anthropic messages provider."""

from typing import Any

from anthropic import (
    Anthropic,
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from pva.llm.base import (
    LLMAPIError,
    LLMAuthenticationError,
    LLMConfig,
    LLMConnectionError,
    LLMPermissionError,
    LLMQuotaError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMTimeoutError,
)


class AnthropicProvider:
    """Anthropic chat completion; the system prompt goes in the top-level field."""

    def __init__(self, config: LLMConfig, client: Anthropic | None = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> Anthropic:
        if self._client is None:
            self._client = Anthropic(api_key=self.config.api_key, timeout=self.config.timeout)
        return self._client

    def complete(self, system: str, user: str, **kwargs: Any) -> str:
        try:
            response = self.client.messages.create(
                model=kwargs.get("model") or self.config.model,
                system=system,
                max_tokens=kwargs.get("max_tokens", self.config.max_tokens),
                temperature=kwargs.get("temperature", self.config.temperature),
                messages=[{"role": "user", "content": user}],
            )
        except APITimeoutError as e:
            raise LLMTimeoutError(str(e)) from e
        except APIConnectionError as e:
            raise LLMConnectionError(str(e)) from e
        except AuthenticationError as e:
            raise LLMAuthenticationError(str(e)) from e
        except PermissionDeniedError as e:
            raise LLMPermissionError(str(e)) from e
        except RateLimitError as e:
            if "quota" in str(e).lower() or "credit" in str(e).lower():
                raise LLMQuotaError(str(e)) from e
            raise LLMRateLimitError(str(e)) from e
        except APIError as e:
            raise LLMAPIError(str(e)) from e

        text_blocks = [b.text for b in (response.content or []) if getattr(b, "type", None) == "text"]
        if not text_blocks:
            raise LLMResponseFormatError("Message has no text content")
        return "".join(text_blocks).strip()
