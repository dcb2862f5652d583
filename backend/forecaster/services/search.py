"""
Web search capability.

Credentials and per-request options travel in an explicit SearchContext
passed to every call; nothing about the caller is held at module level.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol

import requests
from pydantic import BaseModel, ValidationError
from requests.exceptions import RequestException

from forecaster.config import Settings
from forecaster.errors import ParseError, ProviderError
from forecaster.logging import logger


DEFAULT_LOOKBACK_DAYS = 180

SEARCH_TYPES = {
    "all": "all",
    "web": "web",
    "market": "all",
    "academic": "proprietary",
    "proprietary": "proprietary",
}


@dataclass(frozen=True)
class SearchContext:
    api_key: Optional[str] = None
    session_id: Optional[str] = None
    start_date: Optional[str] = None
    max_results: int = 8

    def with_start_date(self, start_date: Optional[str]) -> "SearchContext":
        return replace(self, start_date=start_date) if start_date else self


def default_start_date(now: Optional[datetime] = None, days: int = DEFAULT_LOOKBACK_DAYS) -> str:
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days)).date().isoformat()


class SearchResult(BaseModel):
    title: str = ""
    url: str = ""
    content: str = ""
    published_date: Optional[str] = None


def _parse_row(row: dict) -> SearchResult:
    metadata = row.get("metadata") or {}
    return SearchResult(
        title=row.get("title") or "",
        url=row.get("url") or "",
        content=row.get("content") or "",
        published_date=row.get("publication_date") or metadata.get("published_date"),
    )


class SearchProvider(Protocol):
    async def search(
        self,
        query: str,
        context: SearchContext,
        search_type: str = "all",
    ) -> List[SearchResult]: ...


class ValyuSearchProvider:
    """DeepSearch HTTP client. Raises ProviderError or ParseError; malformed rows are skipped."""

    def __init__(self, api_url: str, timeout: float = 30.0):
        self.api_url = api_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ValyuSearchProvider":
        return cls(settings.search_api_url, settings.search_timeout_seconds)

    def _post(self, query: str, context: SearchContext, search_type: str) -> List[SearchResult]:
        if not context.api_key:
            raise ProviderError("search api key is not configured")

        body = {
            "query": query,
            "search_type": SEARCH_TYPES.get(search_type, "all"),
            "max_num_results": context.max_results,
            "relevance_threshold": 0.5,
            "start_date": context.start_date or default_start_date(),
        }

        try:
            response = requests.post(
                self.api_url,
                json=body,
                headers={"x-api-key": context.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (RequestException, ValueError) as e:
            logger.error(
                "SEARCH_REQUEST_FAILED",
                extra={"query": query, "session_id": context.session_id, "error": str(e)},
            )
            raise ProviderError(f"search failed: {e}") from e

        if not isinstance(payload, dict):
            raise ParseError(f"search returned {type(payload).__name__}, expected an object")
        if payload.get("success") is False:
            raise ProviderError(f"search failed: {payload.get('error', 'unknown error')}")

        rows = payload.get("results") or []
        if not isinstance(rows, list):
            raise ParseError("search results are not a list")

        results = []
        skipped = 0
        for row in rows:
            try:
                results.append(_parse_row(row))
            except (ValidationError, TypeError, AttributeError):
                skipped += 1
        if skipped:
            logger.warning(
                "SEARCH_ROWS_SKIPPED",
                extra={"query": query, "skipped": skipped, "session_id": context.session_id},
            )
        return results

    async def search(
        self,
        query: str,
        context: SearchContext,
        search_type: str = "all",
    ) -> List[SearchResult]:
        results = await asyncio.to_thread(self._post, query, context, search_type)
        logger.info(
            "SEARCH_COMPLETE",
            extra={"query": query, "results": len(results), "session_id": context.session_id},
        )
        return results
