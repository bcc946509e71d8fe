"""LLM adapter layer: OpenAI and Anthropic behind a common protocol."""

from pva.llm.anthropic_provider import AnthropicProvider
from pva.llm.base import LLMConfig, LLMError, LLMProvider
from pva.llm.openai_provider import OpenAIProvider


def get_provider(config: LLMConfig) -> LLMProvider:
    """Return the provider named by config.provider: 'openai' | 'anthropic'."""
    if config.provider.lower() == "anthropic":
        return AnthropicProvider(config)
    return OpenAIProvider(config)


__all__ = ["LLMConfig", "LLMError", "LLMProvider", "OpenAIProvider", "AnthropicProvider", "get_provider"]
