"""OpenAI chat completion provider."""

from typing import Any

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
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


def _is_quota_error(e: APIError) -> bool:
    code = getattr(e, "code", None) or ""
    message = str(e).lower()
    return code == "insufficient_quota" or "quota" in message or "billing" in message


class OpenAIProvider:
    """OpenAI chat completion with a system + user message."""

    def __init__(self, config: LLMConfig, client: OpenAI | None = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.config.api_key, timeout=self.config.timeout)
        return self._client

    def complete(self, system: str, user: str, **kwargs: Any) -> str:
        try:
            response = self.client.chat.completions.create(
                model=kwargs.get("model") or self.config.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=kwargs.get("temperature", self.config.temperature),
                max_tokens=kwargs.get("max_tokens", self.config.max_tokens),
            )
        # APITimeoutError subclasses APIConnectionError, so it goes first
        except APITimeoutError as e:
            raise LLMTimeoutError(str(e)) from e
        except APIConnectionError as e:
            raise LLMConnectionError(str(e)) from e
        except AuthenticationError as e:
            raise LLMAuthenticationError(str(e)) from e
        except PermissionDeniedError as e:
            raise LLMPermissionError(str(e)) from e
        except RateLimitError as e:
            if _is_quota_error(e):
                raise LLMQuotaError(str(e)) from e
            raise LLMRateLimitError(str(e)) from e
        except APIError as e:
            raise LLMAPIError(str(e)) from e

        choices = getattr(response, "choices", None)
        if not choices or choices[0].message is None or choices[0].message.content is None:
            raise LLMResponseFormatError("Completion has no message content")
        return choices[0].message.content.strip()
