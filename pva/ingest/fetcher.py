"""Product page fetching: URL validation, HTTP GET with bounded retries."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urlsplit

import httpx

from pva.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_USER_AGENT = "Product Comparison Tool/1.0 (Mozilla/5.0 compatible)"


class FetchError(Exception):
    """Base class for fetch failures; the message is user-facing."""


class HTTPStatusError(FetchError):
    pass


class EmptyResponseError(FetchError):
    pass


class FetchTimeoutError(FetchError):
    pass


class FetchConnectionError(FetchError):
    pass


@dataclass
class FetchResult:
    """Outcome of a single fetch() call."""

    success: bool
    url: str | None
    content: str | None = None
    status_code: int | None = None
    response_time: float = 0.0
    attempts: int = 0
    errors: list[str] = field(default_factory=list)


def validate_url(url: str | None) -> str | None:
    """Return an error message for an unusable URL, or None if it is fine."""
    if url is None or not str(url).strip():
        return "URL cannot be blank"
    url = str(url).strip()
    if any(ch.isspace() for ch in url):
        return "Invalid URL format"
    try:
        parts = urlsplit(url)
    except ValueError:
        return "Invalid URL format"
    if not parts.scheme or "://" not in url:
        return "Invalid URL format"
    if parts.scheme.lower() not in ("http", "https"):
        return "URL must use HTTP or HTTPS protocol"
    try:
        host = parts.hostname
    except ValueError:
        return "Invalid URL format"
    if not host:
        return "URL must have a valid host"
    return None


class WebPageFetcher:
    """Fetch raw HTML for a product page.

    Timeouts and connection failures are retried up to ``max_retries`` attempts
    in total, sleeping ``retry_delay * attempt`` between attempts. HTTP errors and
    empty bodies fail immediately.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "WebPageFetcher":
        return cls(
            timeout=settings.pva_fetch_timeout,
            max_retries=settings.pva_fetch_max_retries,
            retry_delay=settings.pva_fetch_retry_delay,
            max_redirects=settings.pva_fetch_max_redirects,
            user_agent=settings.pva_user_agent,
            **kwargs,
        )

    def fetch(self, url: str | None) -> FetchResult:
        start = time.monotonic()

        error = validate_url(url)
        if error:
            return FetchResult(success=False, url=url, errors=[error])

        url = url.strip()
        try:
            response, attempts = self._fetch_with_retries(url)
        except FetchError as e:
            return FetchResult(
                success=False,
                url=url,
                response_time=round(time.monotonic() - start, 2),
                errors=[str(e)],
            )
        except httpx.HTTPError as e:
            return FetchResult(
                success=False,
                url=url,
                response_time=round(time.monotonic() - start, 2),
                errors=[f"Network error: {type(e).__name__} - {e}"],
            )

        return FetchResult(
            success=True,
            url=url,
            content=response.text,
            status_code=response.status_code,
            response_time=round(time.monotonic() - start, 2),
            attempts=attempts,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            follow_redirects=True,
            max_redirects=self.max_redirects,
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    def _fetch_with_retries(self, url: str) -> tuple[httpx.Response, int]:
        host = urlsplit(url).hostname
        last_error: FetchError | None = None

        with self._client() as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = client.get(url)
                except httpx.TimeoutException as e:
                    logger.warning("Timeout fetching %s (attempt %d/%d): %s", url, attempt, self.max_retries, e)
                    last_error = FetchTimeoutError(
                        f"Request timed out after {self.max_retries} retries"
                    )
                except httpx.TooManyRedirects:
                    raise FetchError(f"Too many redirects (limit {self.max_redirects})")
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    logger.warning("Connection error fetching %s (attempt %d/%d): %s", url, attempt, self.max_retries, e)
                    last_error = FetchConnectionError(
                        f"Could not connect to {host} after {self.max_retries} retries"
                    )
                else:
                    return self._check_response(response), attempt

                if attempt < self.max_retries:
                    self._sleep(self.retry_delay * attempt)

        assert last_error is not None
        raise last_error

    @staticmethod
    def _check_response(response: httpx.Response) -> httpx.Response:
        if response.status_code >= 400:
            raise HTTPStatusError(f"HTTP {response.status_code}: {response.reason_phrase}")
        if not response.content or not response.text.strip():
            raise EmptyResponseError("No content received from server")
        return response
