"""Mirror the search state into the page query string and restore it on mount.

The query string is the only place search state survives a reload or a shared
link, so encoding is canonical: parameters appear in a fixed order, defaults
are omitted, and numbers never carry a trailing ``.0``. Decoding is lenient in
the opposite direction: each malformed parameter is dropped on its own and the
rest of the URL still applies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Protocol
from urllib.parse import parse_qsl, quote_plus, urlencode, urlsplit

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from storefront_search.schemas.search import SearchFilters, SortBy, SortOrder, format_number, normalize_tags
from storefront_search.services.search.state import SearchState, StateChange
from storefront_search.types import QueryParams
from storefront_search.utils.errors import ParseError

# Order in which parameters are written. ``q`` through ``sortBy`` and ``page``
# are the historical surface; the others make every filter field shareable.
PARAM_ORDER = (
    "q",
    "category",
    "minPrice",
    "maxPrice",
    "sortBy",
    "sortOrder",
    "dateFrom",
    "dateTo",
    "tags",
    "page",
)


class Location(Protocol):
    """Browser-like location the synchronizer reads once and then replaces."""

    @property
    def href(self) -> str:
        """Current path and query string (``/search?q=...``)."""

    def replace(self, url: str) -> None:
        """Swap the current URL without creating a history entry."""


@dataclass
class MemoryLocation:
    """In-process :class:`Location` recording every replacement."""

    href: str = "/search"
    replaced: List[str] = field(default_factory=list)

    def replace(self, url: str) -> None:
        self.href = url
        self.replaced.append(url)

    @property
    def replace_count(self) -> int:
        return len(self.replaced)


@dataclass(frozen=True)
class DecodedState:
    """Search inputs recovered from a query string."""

    query: str = ""
    filters: SearchFilters = field(default_factory=SearchFilters)
    page: int = 1
    invalid: tuple[str, ...] = ()


def encode_params(query: str, filters: SearchFilters, page: int = 1) -> QueryParams:
    """Return the non-default parameters describing the state, in canonical order."""
    params: QueryParams = []
    if query:
        params.append(("q", query))
    if filters.category is not None:
        params.append(("category", filters.category))
    if filters.min_price is not None:
        params.append(("minPrice", format_number(filters.min_price)))
    if filters.max_price is not None:
        params.append(("maxPrice", format_number(filters.max_price)))
    if filters.sort_by is not None:
        params.append(("sortBy", filters.sort_by.value))
    if filters.sort_order is not None:
        params.append(("sortOrder", filters.sort_order.value))
    if filters.date_from is not None:
        params.append(("dateFrom", filters.date_from.isoformat()))
    if filters.date_to is not None:
        params.append(("dateTo", filters.date_to.isoformat()))
    for tag in filters.tags or ():
        params.append(("tags", tag))
    if page != 1:
        params.append(("page", str(page)))
    return params


def encode_state(query: str, filters: SearchFilters, page: int = 1) -> str:
    """Encode the state as a query string (without the leading ``?``)."""
    return urlencode(encode_params(query, filters, page), quote_via=quote_plus)


def build_url(path: str, query: str, filters: SearchFilters, page: int = 1) -> str:
    """Return *path* followed by the encoded state, or the bare path for defaults."""
    encoded = encode_state(query, filters, page)
    return f"{path}?{encoded}" if encoded else path


def _parse_price(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise ParseError(f"price '{raw}' is not a number") from exc
    if not math.isfinite(value) or value < 0:
        raise ParseError(f"price '{raw}' is out of range")
    return value


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ParseError(f"date '{raw}' is not an ISO date") from exc


def _parse_page(raw: str) -> int:
    if not (raw.isascii() and raw.isdigit()):
        raise ParseError(f"page '{raw[:20]}' is not a positive integer")
    try:
        value = int(raw)
    except ValueError as exc:
        raise ParseError(f"page '{raw[:20]}' is out of range") from exc
    if value < 1:
        raise ParseError(f"page '{raw}' is not a positive integer")
    return value


def _parse_sort_by(raw: str) -> SortBy:
    try:
        return SortBy(raw)
    except ValueError as exc:
        raise ParseError(f"unknown sortBy '{raw}'") from exc


def _parse_sort_order(raw: str) -> SortOrder:
    try:
        return SortOrder(raw)
    except ValueError as exc:
        raise ParseError(f"unknown sortOrder '{raw}'") from exc


_SCALAR_PARSERS: Dict[str, tuple[str, Callable[[str], object]]] = {
    "minPrice": ("min_price", _parse_price),
    "maxPrice": ("max_price", _parse_price),
    "sortBy": ("sort_by", _parse_sort_by),
    "sortOrder": ("sort_order", _parse_sort_order),
    "dateFrom": ("date_from", _parse_date),
    "dateTo": ("date_to", _parse_date),
}


def decode_state(querystring: str) -> DecodedState:
    """Recover query, filters and page from *querystring*.

    Never raises: a malformed parameter is logged as ``url.param_invalid`` and
    treated as unset. An inverted price or date range drops both bounds.
    Unknown parameters are ignored; for repeated scalar parameters the first
    occurrence wins.
    """
    raw = querystring[1:] if querystring.startswith("?") else querystring
    pairs = parse_qsl(raw, keep_blank_values=False)
    invalid: List[str] = []
    values: Dict[str, object] = {}
    query = ""
    page = 1
    tags: List[str] = []
    seen: set[str] = set()

    def _reject(name: str, exc: ParseError) -> None:
        invalid.append(name)
        logger.bind(param=name, reason=exc.message).warning("url.param_invalid")

    for name, value in pairs:
        if name == "tags":
            tags.append(value)
            continue
        if name in seen:
            continue
        seen.add(name)
        if name == "q":
            query = value
        elif name == "category":
            values["category"] = value
        elif name == "page":
            try:
                page = _parse_page(value)
            except ParseError as exc:
                _reject(name, exc)
        elif name in _SCALAR_PARSERS:
            field_name, parser = _SCALAR_PARSERS[name]
            try:
                values[field_name] = parser(value)
            except ParseError as exc:
                _reject(name, exc)
    if tags:
        values["tags"] = normalize_tags(tags)

    for low, high, label in (("min_price", "max_price", "price"), ("date_from", "date_to", "date")):
        lower, upper = values.get(low), values.get(high)
        if lower is not None and upper is not None and lower > upper:  # type: ignore[operator]
            values.pop(low)
            values.pop(high)
            _reject(label, ParseError(f"inverted {label} range"))

    try:
        filters = SearchFilters.model_validate(values)
    except PydanticValidationError as exc:
        invalid.extend(sorted(values))
        logger.bind(errors=exc.error_count()).warning("url.filters_invalid")
        filters = SearchFilters()
    return DecodedState(query=query, filters=filters, page=page, invalid=tuple(invalid))


class UrlSynchronizer:
    """Keep ``location`` in step with a :class:`SearchState`.

    :meth:`mount` performs the inverse mapping exactly once, seeding the state
    from the current URL, then subscribes so every later change replaces the
    URL in place. No other component writes the search parameters.
    """

    def __init__(self, state: SearchState, location: Location, *, path: str = "/search") -> None:
        self._state = state
        self._location = location
        self._path = path
        self._unsubscribe: Callable[[], None] | None = None
        self._last_url: str | None = None

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    def mount(self) -> DecodedState:
        """Seed the state from the location and start mirroring changes."""
        if self._unsubscribe is not None:
            raise RuntimeError("UrlSynchronizer is already mounted")
        current = urlsplit(self._location.href)
        self._last_url = f"{current.path}?{current.query}" if current.query else current.path
        decoded = decode_state(current.query)
        self._unsubscribe = self._state.subscribe(self._on_change)
        self._state.seed(decoded.query, decoded.filters, decoded.page)
        return decoded

    def unmount(self) -> None:
        """Stop mirroring changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def current_url(self) -> str:
        """Return the URL matching the current state."""
        state = self._state
        return build_url(self._path, state.query, state.filters, state.page)

    def _on_change(self, change: StateChange) -> None:
        snapshot = change.snapshot
        url = build_url(self._path, snapshot.query, snapshot.filters, snapshot.page)
        if url != self._last_url:
            self._location.replace(url)
            self._last_url = url


__all__ = [
    "DecodedState",
    "Location",
    "MemoryLocation",
    "PARAM_ORDER",
    "UrlSynchronizer",
    "build_url",
    "decode_state",
    "encode_params",
    "encode_state",
]
