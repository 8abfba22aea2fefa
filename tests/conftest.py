"""Test fixtures for storefront_search."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Callable, Iterator, List

import pytest
from loguru import logger

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

os.environ.setdefault("STOREFRONT_API_URL", "http://storefront.test/api")
os.environ.setdefault("SEARCH_DEBOUNCE_MS", "300")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from storefront_search.config import Settings  # noqa: E402
from storefront_search.schemas.search import SearchQuery, SearchResponse, SearchSuggestion  # noqa: E402
from storefront_search.utils.errors import SearchError  # noqa: E402

API_URL = "http://storefront.test/api"


def make_result(identifier: str | int, title: str | None = None, **extra: object) -> dict[str, object]:
    """Return a search hit payload as the storefront API serialises it."""
    payload: dict[str, object] = {
        "id": identifier,
        "title": title or f"商品 {identifier}",
        "description": f"説明 {identifier}",
        "url": f"/products/{identifier}",
    }
    payload.update(extra)
    return payload


def make_envelope(
    results: List[dict[str, object]],
    *,
    total: int | None = None,
    page: int = 1,
    total_pages: int | None = None,
) -> dict[str, object]:
    """Return a consistent ``GET /search`` envelope."""
    count = len(results) if total is None else total
    pages = (1 if count else 0) if total_pages is None else total_pages
    return {
        "results": results,
        "total": count,
        "page": page,
        "totalPages": pages,
        "hasMore": page < pages,
    }


class FakeSearchClient:
    """Scriptable search client standing in for :class:`SearchApiClient`.

    Each call to :meth:`search` waits on a per-call :class:`asyncio.Event` so
    tests decide the completion order of concurrent requests.
    """

    def __init__(self, *, auto: bool = True, ignore_cancel: bool = False) -> None:
        self.auto = auto
        self.ignore_cancel = ignore_cancel
        self.calls: List[SearchQuery] = []
        self.gates: List[asyncio.Event] = []
        self.outcomes: dict[str, SearchResponse | SearchError] = {}
        self.suggestion_calls: List[str] = []
        self.suggestion_map: dict[str, List[SearchSuggestion]] = {}

    def respond(self, text: str, outcome: SearchResponse | SearchError) -> None:
        self.outcomes[text] = outcome

    def release(self, index: int) -> None:
        self.gates[index].set()

    async def search(self, query: SearchQuery) -> SearchResponse:
        self.calls.append(query)
        gate = asyncio.Event()
        if self.auto:
            gate.set()
        self.gates.append(gate)
        if self.ignore_cancel:
            while not gate.is_set():
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    continue
        else:
            await gate.wait()
        outcome = self.outcomes.get(query.query)
        if isinstance(outcome, SearchError):
            raise outcome
        if outcome is None:
            return SearchResponse.model_validate(make_envelope([make_result(f"{query.query}-1")]))
        return outcome

    async def suggestions(self, text: str) -> List[SearchSuggestion]:
        self.suggestion_calls.append(text)
        return self.suggestion_map.get(text, [])


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    """Build isolated settings without touching the cached instance."""

    def _factory(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "api_base_url": API_URL,
            "search_debounce_ms": 30,
            "suggestion_debounce_ms": 20,
        }
        values.update(overrides)
        return Settings(**values)  # type: ignore[arg-type]

    return _factory


@pytest.fixture()
def fast_settings(settings_factory: Callable[..., Settings]) -> Settings:
    return settings_factory()


@pytest.fixture()
def fake_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture()
def captured_logs() -> Iterator[Callable[[], List[dict[str, object]]]]:
    """Capture serialised loguru records and expose them as dictionaries."""
    captured: List[str] = []
    sink_id = logger.add(captured.append, serialize=True, level="DEBUG")

    def _records() -> List[dict[str, object]]:
        return [json.loads(line)["record"] for line in captured]

    try:
        yield _records
    finally:
        logger.remove(sink_id)


@pytest.fixture()
def anyio_backend() -> str:
    """Run anyio-marked tests on the asyncio backend only.

    The debouncer and the session schedule work with ``asyncio.create_task``,
    which only exists on the asyncio backend.
    """
    return "asyncio"
