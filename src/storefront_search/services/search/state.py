"""Observable container holding the query, filters and page of a search view."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Literal, Mapping

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from storefront_search.schemas.search import SearchFilters, SearchQuery
from storefront_search.utils.errors import ValidationError, from_pydantic

ChangeReason = Literal["query", "filters", "page", "reset", "seed"]


@dataclass(frozen=True)
class StateChange:
    """Event delivered to subscribers after every effective state update."""

    reason: ChangeReason
    snapshot: SearchQuery


StateListener = Callable[[StateChange], None]


class SearchState:
    """Own the raw search inputs of a single view and publish their changes.

    ``query`` follows every keystroke; debouncing happens downstream, in the
    session. Changing the query or the filters always moves back to page 1.
    Operations that leave the state unchanged publish nothing, which makes
    :meth:`reset` idempotent from the subscribers' point of view.
    """

    def __init__(self, *, limit: int = 10) -> None:
        if limit < 1:
            raise ValueError("limit must be positive")
        self._limit = limit
        self._query = ""
        self._filters = SearchFilters()
        self._page = 1
        self._listeners: List[StateListener] = []

    @property
    def query(self) -> str:
        return self._query

    @property
    def filters(self) -> SearchFilters:
        return self._filters

    @property
    def page(self) -> int:
        return self._page

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def snapshot(self) -> SearchQuery:
        """Return the :class:`SearchQuery` derived from the current inputs."""
        return SearchQuery(query=self._query, filters=self._filters, page=self._page, limit=self._limit)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* and return a callable removing it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_query(self, text: str) -> None:
        """Replace the free-text query and return to the first page."""
        if text == self._query and self._page == 1:
            return
        self._query = text
        self._page = 1
        self._publish("query")

    def set_filters(
        self,
        changes: SearchFilters | Mapping[str, object],
        *,
        replace: bool = False,
    ) -> None:
        """Merge *changes* into the filters, or substitute them when ``replace``.

        Raises :class:`ValidationError` (leaving the state untouched) when the
        resulting filter set is invalid, e.g. ``minPrice > maxPrice``.
        """
        try:
            if replace:
                updated = (
                    changes
                    if isinstance(changes, SearchFilters)
                    else SearchFilters.model_validate(dict(changes))
                )
            else:
                updated = self._filters.merged(changes)
        except PydanticValidationError as exc:
            error = from_pydantic(exc)
            logger.bind(details=error.details).info("state.filters_rejected")
            raise error from exc
        if updated == self._filters and self._page == 1:
            return
        self._filters = updated
        self._page = 1
        self._publish("filters")

    def set_page(self, page: int) -> None:
        """Move to *page* (1-based)."""
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError("page must be a positive integer", details={"page": str(page)})
        if page == self._page:
            return
        self._page = page
        self._publish("page")

    def reset(self) -> None:
        """Return to an empty query, no filters and page 1."""
        if self._query == "" and self._filters.is_empty and self._page == 1:
            return
        self._query = ""
        self._filters = SearchFilters()
        self._page = 1
        self._publish("reset")

    def seed(self, query: str, filters: SearchFilters, page: int = 1) -> None:
        """Install a complete state at once (used when restoring from the URL)."""
        if page < 1:
            raise ValidationError("page must be a positive integer", details={"page": page})
        self._query = query
        self._filters = filters
        self._page = page
        self._publish("seed")

    def _publish(self, reason: ChangeReason) -> None:
        change = StateChange(reason=reason, snapshot=self.snapshot)
        for listener in list(self._listeners):
            listener(change)


__all__ = ["ChangeReason", "SearchState", "StateChange", "StateListener"]
