"""Search session orchestrating state, debouncing, fetching and presentation."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Callable, List, Mapping

from loguru import logger

from storefront_search.config import Settings, get_settings
from storefront_search.schemas.search import SearchFilters, SearchQuery, SearchResponse, SearchSuggestion
from storefront_search.services.search.client import SearchClientProtocol
from storefront_search.services.search.presentation import IDLE_VIEW, ResultsView, present
from storefront_search.services.search.state import SearchState, StateChange
from storefront_search.services.search.url_sync import Location, MemoryLocation, UrlSynchronizer
from storefront_search.utils.debounce import Debouncer
from storefront_search.utils.errors import SearchError
from storefront_search.utils.logging import new_trace_id, set_search_metadata

ViewListener = Callable[[ResultsView], None]


class SearchSession:
    """Own the search inputs of one view and keep its results up to date.

    Data flow: a caller updates the :class:`SearchState`; query keystrokes go
    through a :class:`Debouncer` while filter, page and reset changes dispatch
    at once (filters apply immediately, there is no separate "apply" step).
    Each dispatch gets a new generation number and cancels the previous
    in-flight request. A response whose generation is no longer current is
    discarded, so the latest query always wins even when an older request
    completes last.

    Client errors never escape the session: they become the ``error`` view.
    """

    def __init__(
        self,
        client: SearchClientProtocol,
        *,
        location: Location | None = None,
        settings: Settings | None = None,
    ) -> None:
        active = settings or get_settings()
        self._client = client
        self._state = SearchState(limit=active.search_page_size)
        self._location = location or MemoryLocation(active.search_path)
        self._url_sync = UrlSynchronizer(self._state, self._location, path=active.search_path)
        self._debouncer: Debouncer[SearchQuery] = Debouncer(
            self._state.snapshot, active.search_debounce_ms, on_settle=self._dispatch
        )
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._response: SearchResponse | None = None
        self._error: SearchError | None = None
        self._view: ResultsView = IDLE_VIEW
        self._listeners: List[ViewListener] = []
        self._unsubscribe_state: Callable[[], None] | None = None
        self._closed = False

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def location(self) -> Location:
        return self._location

    @property
    def view(self) -> ResultsView:
        """Current results view."""
        return self._view

    @property
    def response(self) -> SearchResponse | None:
        """Response of the current query, or ``None`` while loading or after an error."""
        return self._response

    @property
    def generation(self) -> int:
        """Number of searches dispatched so far."""
        return self._generation

    @property
    def url(self) -> str:
        return self._url_sync.current_url()

    @property
    def typing(self) -> bool:
        """True while a query change waits for the debounce window."""
        return self._debouncer.pending

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Register *listener* for view updates and return an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def mount(self) -> None:
        """Restore state from the location and fetch it once if searchable.

        Seeding happens before the session listens to the state, so a restored
        query is fetched exactly once and without waiting for the debounce.
        """
        if self._closed:
            raise RuntimeError("SearchSession is closed")
        if self._unsubscribe_state is not None:
            raise RuntimeError("SearchSession is already mounted")
        self._url_sync.mount()
        self._unsubscribe_state = self._state.subscribe(self._on_state_change)
        logger.bind(url=self._location.href).debug("session.mounted")
        self._dispatch(self._state.snapshot)

    def on_search(self, text: str) -> None:
        """Record a keystroke; the search runs once typing pauses."""
        self._ensure_open()
        self._state.set_query(text)

    async def submit(self, text: str | None = None) -> None:
        """Search now (Enter key), skipping what is left of the debounce window.

        Submitting an unchanged query searches again, which is how a failed
        search is retried.
        """
        self._ensure_open()
        if text is not None:
            self._state.set_query(text)
        if not self._debouncer.flush():
            self._dispatch(self._state.snapshot)

    def on_filters_change(
        self,
        filters: SearchFilters | Mapping[str, object],
        *,
        replace: bool = False,
    ) -> None:
        """Apply filter changes immediately.

        Raises :class:`~storefront_search.utils.errors.ValidationError` before
        any request when the filters are invalid.
        """
        self._ensure_open()
        self._state.set_filters(filters, replace=replace)

    def set_page(self, page: int) -> None:
        """Move to another result page."""
        self._ensure_open()
        self._state.set_page(page)

    def reset(self) -> None:
        """Clear query, filters and page."""
        self._ensure_open()
        self._state.reset()

    async def wait_idle(self) -> None:
        """Wait until no debounce timer is pending and no request is in flight."""
        while True:
            if self._debouncer.pending:
                await self._debouncer.wait()
                continue
            task = self._task
            if task is None:
                return
            await asyncio.wait({task})
            if self._task is task:
                return

    async def aclose(self) -> None:
        """Tear down: cancel the debounce timer and any request in flight."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe_state is not None:
            self._unsubscribe_state()
            self._unsubscribe_state = None
        self._url_sync.unmount()
        await self._debouncer.aclose()
        await self._cancel_inflight()
        self._listeners.clear()
        logger.debug("session.closed")

    async def __aenter__(self) -> "SearchSession":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("SearchSession is closed")

    def _on_state_change(self, change: StateChange) -> None:
        if change.reason == "query":
            self._debouncer.push(change.snapshot)
            return
        self._debouncer.cancel()
        self._dispatch(change.snapshot)

    def _dispatch(self, query: SearchQuery) -> None:
        self._generation += 1
        generation = self._generation
        previous = self._task
        self._task = None
        if previous is not None and not previous.done():
            previous.cancel()
        if not query.searchable:
            self._response = None
            self._error = None
            self._set_view(IDLE_VIEW)
            return
        self._response = None
        self._error = None
        self._set_view(present(loading=True, error=None, response=None))
        logger.bind(generation=generation, query=query.query, page=query.page).info("search.dispatched")
        self._task = asyncio.get_running_loop().create_task(self._run(generation, query))

    async def _run(self, generation: int, query: SearchQuery) -> None:
        new_trace_id()
        set_search_metadata(query=query.query, page=query.page, generation=generation)
        response: SearchResponse | None = None
        error: SearchError | None = None
        try:
            response = await self._client.search(query)
        except SearchError as exc:
            error = exc
        if generation != self._generation:
            logger.bind(generation=generation, current=self._generation).info("search.stale_discarded")
            return
        self._response = response
        self._error = error
        if error is not None:
            logger.bind(generation=generation, code=error.code).warning("search.failed")
        self._set_view(present(loading=False, error=error, response=response))

    async def _cancel_inflight(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _set_view(self, view: ResultsView) -> None:
        self._view = view
        for listener in list(self._listeners):
            listener(view)


class SuggestionFeed:
    """Debounced completions for the search box with the same latest-wins guard."""

    def __init__(self, client: SearchClientProtocol, *, delay_ms: int | None = None) -> None:
        self._client = client
        delay = get_settings().suggestion_debounce_ms if delay_ms is None else delay_ms
        self._debouncer: Debouncer[str] = Debouncer("", delay, on_settle=self._fetch)
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._suggestions: List[SearchSuggestion] = []

    @property
    def suggestions(self) -> List[SearchSuggestion]:
        return list(self._suggestions)

    def update(self, text: str) -> None:
        """Record the current input of the search box."""
        self._debouncer.push(text)

    async def wait_idle(self) -> None:
        while True:
            if self._debouncer.pending:
                await self._debouncer.wait()
                continue
            task = self._task
            if task is None:
                return
            await asyncio.wait({task})
            if self._task is task:
                return

    async def aclose(self) -> None:
        await self._debouncer.aclose()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _fetch(self, text: str) -> None:
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if not text.strip():
            self._suggestions = []
            return
        self._task = asyncio.get_running_loop().create_task(self._run(generation, text))

    async def _run(self, generation: int, text: str) -> None:
        try:
            suggestions = await self._client.suggestions(text)
        except SearchError as exc:
            logger.bind(code=exc.code).warning("suggestions.failed")
            suggestions = []
        if generation == self._generation:
            self._suggestions = suggestions


__all__ = ["SearchSession", "SuggestionFeed", "ViewListener"]
