"""Stage 1: fetch raw product page HTML."""

from pva.ingest.fetcher import FetchResult, WebPageFetcher, validate_url

__all__ = ["FetchResult", "WebPageFetcher", "validate_url"]
