"""HTTP client for the storefront search endpoints."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Protocol, Set

import httpx
from loguru import logger
from pydantic import TypeAdapter

from storefront_search.config import Settings, get_settings
from storefront_search.schemas.search import (
    SearchHistoryItem,
    SearchQuery,
    SearchResponse,
    SearchSuggestion,
    format_number,
)
from storefront_search.services.http import ApiTransport, parse_payload
from storefront_search.types import QueryParams
from storefront_search.utils.errors import SearchError, ValidationError

_RESPONSE = TypeAdapter(SearchResponse)
_SUGGESTIONS = TypeAdapter(List[SearchSuggestion])
_HISTORY = TypeAdapter(List[SearchHistoryItem])
_HISTORY_ITEM = TypeAdapter(SearchHistoryItem)
_STRINGS = TypeAdapter(List[str])


class SearchClientProtocol(Protocol):
    """Protocol describing the subset of client behaviour used by the session."""

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Execute the search and return the parsed envelope."""

    async def suggestions(self, text: str) -> List[SearchSuggestion]:
        """Return completions for a partial query."""


def build_search_params(query: SearchQuery) -> QueryParams:
    """Serialise *query* into ``GET /search`` parameters.

    ``q``, ``page`` and ``limit`` are always sent; filter fields only when set.
    ``tags`` is repeated once per tag.
    """
    filters = query.filters
    params: QueryParams = [
        ("q", query.query),
        ("page", str(query.page)),
        ("limit", str(query.limit)),
    ]
    if filters.category is not None:
        params.append(("category", filters.category))
    if filters.min_price is not None:
        params.append(("minPrice", format_number(filters.min_price)))
    if filters.max_price is not None:
        params.append(("maxPrice", format_number(filters.max_price)))
    for tag in filters.tags or ():
        params.append(("tags", tag))
    if filters.date_from is not None:
        params.append(("dateFrom", filters.date_from.isoformat()))
    if filters.date_to is not None:
        params.append(("dateTo", filters.date_to.isoformat()))
    if filters.sort_by is not None:
        params.append(("sortBy", filters.sort_by.value))
    if filters.sort_order is not None:
        params.append(("sortOrder", filters.sort_order.value))
    return params


class SearchApiClient:
    """Asynchronous wrapper around ``/search`` and its companion endpoints.

    A successful :meth:`search` with non-empty query text appends an entry to
    the server-side history in a background task. That write is fire-and-forget:
    its failure is logged and swallowed, and it never delays the search result.
    :meth:`aclose` waits for outstanding history writes.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        record_history: bool = True,
    ) -> None:
        self._api = ApiTransport(base_url, timeout=timeout, transport=transport)
        self._record_history = record_history
        self._history_tasks: Set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "SearchApiClient":
        """Build a client pointed at the configured storefront API."""
        active = settings or get_settings()
        return cls(active.api_base_url, timeout=active.api_timeout, transport=transport)

    @property
    def pending_history_writes(self) -> int:
        """Number of history writes still in flight."""
        return len(self._history_tasks)

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Fetch one page of results for *query*."""
        response = parse_payload(
            _RESPONSE,
            await self._api.get_json("/search", params=build_search_params(query)),
            path="/search",
        )
        if self._record_history and query.query.strip():
            self._spawn_history_write(query.query, response.total)
        return response

    async def suggestions(self, text: str) -> List[SearchSuggestion]:
        """Return completions for the partial query *text*."""
        payload = await self._api.get_json("/search/suggestions", params=[("q", text)])
        return parse_payload(_SUGGESTIONS, payload, path="/search/suggestions")

    async def history(self, limit: int = 10) -> List[SearchHistoryItem]:
        """Return the most recent history entries."""
        if limit < 1:
            raise ValidationError("limit must be at least 1", details={"limit": limit})
        payload = await self._api.get_json("/search/history", params=[("limit", str(limit))])
        return parse_payload(_HISTORY, payload, path="/search/history")

    async def add_history(
        self,
        query: str,
        results_count: int,
        timestamp: datetime | None = None,
    ) -> SearchHistoryItem:
        """Append one entry to the search history."""
        moment = timestamp or datetime.now(timezone.utc)
        body = {
            "query": query,
            "resultsCount": results_count,
            "timestamp": moment.isoformat().replace("+00:00", "Z"),
        }
        payload = await self._api.post_json("/search/history", body)
        return parse_payload(_HISTORY_ITEM, payload, path="/search/history")

    async def clear_history(self) -> None:
        """Delete every history entry."""
        await self._api.delete("/search/history")

    async def categories(self) -> List[str]:
        """Return the category identifiers usable as ``category`` filter."""
        return parse_payload(_STRINGS, await self._api.get_json("/search/categories"), path="/search/categories")

    async def tags(self) -> List[str]:
        """Return popular tags usable as ``tags`` filter."""
        return parse_payload(_STRINGS, await self._api.get_json("/search/tags"), path="/search/tags")

    async def aclose(self) -> None:
        """Wait for background history writes to finish."""
        if self._history_tasks:
            await asyncio.gather(*self._history_tasks, return_exceptions=True)

    def _spawn_history_write(self, query: str, results_count: int) -> None:
        task = asyncio.get_running_loop().create_task(self._write_history(query, results_count))
        self._history_tasks.add(task)
        task.add_done_callback(self._history_tasks.discard)

    async def _write_history(self, query: str, results_count: int) -> None:
        try:
            await self.add_history(query, results_count)
        except SearchError as exc:
            logger.bind(query=query, code=exc.code, details=exc.details).warning("history.write_failed")


__all__ = ["SearchApiClient", "SearchClientProtocol", "build_search_params"]
