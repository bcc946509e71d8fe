"""Product variant extraction from page HTML via an LLM and a fixed JSON prompt."""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from pva.llm import LLMConfig, LLMProvider, get_provider
from pva.llm.base import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    LLMPermissionError,
    LLMQuotaError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMTimeoutError,
)
from pva.schemas.extraction import ExtractedProduct, ExtractionDataError, parse_extraction_data

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

HTML_CHAR_LIMIT = 8000

# Checked in order; first match wins
_ERROR_MESSAGES: list[tuple[type[LLMError], str]] = [
    (LLMAuthenticationError, "Authentication failed: Invalid API key"),
    (LLMQuotaError, "Quota exceeded: Check your API billing"),
    (LLMRateLimitError, "Rate limit exceeded: Please try again later"),
    (LLMPermissionError, "Permission denied: Check your API key permissions"),
    (LLMTimeoutError, "Request timeout: AI API took too long to respond"),
    (LLMConnectionError, "Connection failed: Unable to connect to AI API"),
    (LLMResponseFormatError, "Invalid response format from AI API"),
]


def classify_llm_error(error: LLMError) -> str:
    """Map a provider error to its user-facing category message."""
    for error_type, message in _ERROR_MESSAGES:
        if isinstance(error, error_type):
            return message
    return f"AI API error: {error}"


@dataclass
class ExtractionResult:
    """``success`` reflects the API call; ``data`` is None when content was unusable."""

    success: bool
    url: str | None
    data: ExtractedProduct | None = None
    raw_response: str | None = None
    model_used: str = ""
    response_time: float = 0.0
    errors: list[str] = field(default_factory=list)


def _strip_code_fence(raw: str) -> str:
    s = raw.strip()
    if s.startswith("```"):
        s = re.sub(r"^```\w*\n?", "", s)
        s = re.sub(r"\n?```\s*$", "", s)
    return s.strip()


def _parse_json(raw: str) -> Any:
    """Parse the outermost {...} span of a (possibly fenced) model answer."""
    text = _strip_code_fence(raw)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", text, 0)
    return json.loads(text[start : end + 1])


class AIContentExtractor:
    """Send page HTML + URL to the model and return validated product data."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        provider: LLMProvider | None = None,
        html_char_limit: int = HTML_CHAR_LIMIT,
    ):
        if provider is None:
            provider = get_provider(config or LLMConfig())
        self.provider = provider
        self.config = config or provider.config
        self.html_char_limit = html_char_limit
        env = Environment(loader=FileSystemLoader(str(PROMPTS_DIR)), keep_trailing_newline=True)
        self._system_tpl = env.get_template("product_extract_system.j2")
        self._user_tpl = env.get_template("product_extract_user.j2")

    @property
    def model(self) -> str:
        return self.config.model

    def build_messages(self, html_content: str, url: str) -> tuple[str, str]:
        """Return (system, user) prompt text; HTML is cut to html_char_limit."""
        truncated = html_content[: self.html_char_limit]
        system = self._system_tpl.render().strip()
        user = self._user_tpl.render(url=url, html=truncated, char_limit=self.html_char_limit)
        return system, user

    def _complete(self, system: str, user: str) -> tuple[str | None, float, list[str]]:
        if not self.config.api_key:
            return None, 0.0, ["AI API key not configured"]
        start = time.monotonic()
        try:
            content = self.provider.complete(system, user)
        except LLMError as e:
            logger.warning("LLM call failed (%s): %s", type(e).__name__, e)
            return None, round(time.monotonic() - start, 2), [classify_llm_error(e)]
        return content, round(time.monotonic() - start, 2), []

    def test_connection(self) -> dict[str, Any]:
        """Round-trip a trivial prompt to check credentials and reachability."""
        content, elapsed, errors = self._complete(
            "You are a connectivity check.", "Respond with exactly: 'Connection successful'"
        )
        return {"success": not errors, "response": content, "response_time": elapsed, "errors": errors}

    def extract(self, html_content: str | None, url: str | None) -> ExtractionResult:
        if not html_content or not html_content.strip():
            return ExtractionResult(success=False, url=url, model_used=self.model, errors=["HTML content cannot be blank"])
        if not url or not url.strip():
            return ExtractionResult(success=False, url=url, model_used=self.model, errors=["URL cannot be blank"])

        system, user = self.build_messages(html_content, url)
        raw, elapsed, errors = self._complete(system, user)
        if errors:
            return ExtractionResult(
                success=False, url=url, model_used=self.model, response_time=elapsed, errors=errors
            )

        result = ExtractionResult(
            success=True, url=url, raw_response=raw, model_used=self.model, response_time=elapsed
        )
        try:
            data = _parse_json(raw)
        except json.JSONDecodeError as e:
            logger.warning("Model returned invalid JSON for %s: %s", url, e)
            result.errors = [f"Invalid JSON in AI response: {e.msg}"]
            return result

        try:
            result.data = parse_extraction_data(data)
        except ExtractionDataError as e:
            logger.warning("Extracted data for %s failed validation: %s", url, e)
            result.errors = e.errors
        return result
