"""Tests for vendor SDK error translation in the OpenAI and Anthropic providers."""

from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from pva.llm import AnthropicProvider, LLMConfig, OpenAIProvider, get_provider
from pva.llm.base import (
    LLMAPIError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMPermissionError,
    LLMQuotaError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMTimeoutError,
)

CONFIG = LLMConfig(api_key="test-key", model="test-model", temperature=0.1, max_tokens=1000)


def _request():
    return httpx.Request("POST", "https://api.example.com/v1/chat")


def _response(status_code):
    return httpx.Response(status_code, request=_request())


def _openai(create):
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return OpenAIProvider(CONFIG, client=client)


def _anthropic(create):
    return AnthropicProvider(CONFIG, client=SimpleNamespace(messages=SimpleNamespace(create=create)))


def _raiser(error):
    def create(**kwargs):
        raise error

    return create


# --- OpenAI ---


def test_openai_sends_system_and_user_messages():
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        message = SimpleNamespace(content='  {"ok": true}\n')
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    assert _openai(create).complete("sys", "usr") == '{"ok": true}'
    assert seen["model"] == "test-model"
    assert seen["temperature"] == 0.1
    assert seen["max_tokens"] == 1000
    assert seen["messages"] == [{"role": "system", "content": "sys"}, {"role": "user", "content": "usr"}]


@pytest.mark.parametrize(
    "error,expected",
    [
        (openai.AuthenticationError("bad key", response=_response(401), body=None), LLMAuthenticationError),
        (openai.PermissionDeniedError("forbidden", response=_response(403), body=None), LLMPermissionError),
        (openai.RateLimitError("slow down", response=_response(429), body=None), LLMRateLimitError),
        (
            openai.RateLimitError("out of credit", response=_response(429), body={"code": "insufficient_quota"}),
            LLMQuotaError,
        ),
        (openai.APITimeoutError(request=_request()), LLMTimeoutError),
        (openai.APIConnectionError(message="refused", request=_request()), LLMConnectionError),
        (openai.InternalServerError("boom", response=_response(500), body=None), LLMAPIError),
    ],
)
def test_openai_error_mapping(error, expected):
    with pytest.raises(expected):
        _openai(_raiser(error)).complete("sys", "usr")


@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(choices=[]),
        SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None))]),
    ],
)
def test_openai_empty_envelope(response):
    with pytest.raises(LLMResponseFormatError):
        _openai(lambda **kwargs: response).complete("sys", "usr")


# --- Anthropic ---


def test_anthropic_joins_text_blocks():
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"a": '), SimpleNamespace(type="text", text="1}")]
        )

    assert _anthropic(create).complete("sys", "usr") == '{"a": 1}'
    assert seen["system"] == "sys"
    assert seen["messages"] == [{"role": "user", "content": "usr"}]


@pytest.mark.parametrize(
    "error,expected",
    [
        (anthropic.AuthenticationError("bad key", response=_response(401), body=None), LLMAuthenticationError),
        (anthropic.PermissionDeniedError("forbidden", response=_response(403), body=None), LLMPermissionError),
        (anthropic.RateLimitError("slow down", response=_response(429), body=None), LLMRateLimitError),
        (anthropic.RateLimitError("credit balance too low", response=_response(429), body=None), LLMQuotaError),
        (anthropic.APITimeoutError(request=_request()), LLMTimeoutError),
        (anthropic.APIConnectionError(message="refused", request=_request()), LLMConnectionError),
        (anthropic.InternalServerError("boom", response=_response(500), body=None), LLMAPIError),
    ],
)
def test_anthropic_error_mapping(error, expected):
    with pytest.raises(expected):
        _anthropic(_raiser(error)).complete("sys", "usr")


def test_anthropic_without_text_blocks():
    with pytest.raises(LLMResponseFormatError):
        _anthropic(lambda **kwargs: SimpleNamespace(content=[])).complete("sys", "usr")


def test_get_provider_selects_by_name():
    assert isinstance(get_provider(LLMConfig(provider="anthropic")), AnthropicProvider)
    assert isinstance(get_provider(LLMConfig(provider="openai")), OpenAIProvider)
