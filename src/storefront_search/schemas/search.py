"""Pydantic models describing search queries, filters and API payloads.

Python attribute names are snake_case while the wire format (REST bodies and
the page query string) uses the camelCase names of the storefront API, exposed
as aliases. ``populate_by_name`` lets callers use either spelling.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable, List, Literal, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SortBy(str, Enum):
    """Orderings understood by the search endpoint."""

    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"


class SortOrder(str, Enum):
    """Explicit direction forwarded verbatim as ``sortOrder``."""

    ASC = "asc"
    DESC = "desc"


def _blank_to_none(value: object) -> object:
    """Collapse empty strings to ``None`` so absence has a single spelling."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def normalize_tags(values: Iterable[str] | str | None) -> Tuple[str, ...] | None:
    """Return stripped, de-duplicated tags in first-seen order, or ``None``."""
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    cleaned: List[str] = []
    for value in values:
        candidate = str(value).strip()
        if not candidate or candidate in cleaned:
            continue
        cleaned.append(candidate)
    return tuple(cleaned) or None


class SearchFilters(BaseModel):
    """Structured constraints applied on top of the free-text query.

    Every field is optional and ``None`` means "no constraint". Values that
    are equivalent to no constraint (blank category, empty tag list,
    ``sortBy=relevance``) are normalised to ``None`` on construction.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    category: str | None = Field(default=None, description="Category identifier (e.g. electronics).")
    min_price: float | None = Field(
        default=None, alias="minPrice", ge=0, allow_inf_nan=False, description="Inclusive lower price bound."
    )
    max_price: float | None = Field(
        default=None, alias="maxPrice", ge=0, allow_inf_nan=False, description="Inclusive upper price bound."
    )
    sort_by: SortBy | None = Field(
        default=None, alias="sortBy", description="Result ordering; ``None`` means relevance."
    )
    sort_order: SortOrder | None = Field(default=None, alias="sortOrder")
    date_from: date | None = Field(default=None, alias="dateFrom")
    date_to: date | None = Field(default=None, alias="dateTo")
    tags: Tuple[str, ...] | None = Field(default=None, description="Tags every result must carry.")

    @field_validator("category", "sort_order", "date_from", "date_to", "min_price", "max_price", mode="before")
    @classmethod
    def blank_is_absent(cls, value: object) -> object:
        """Treat blank strings as an absent constraint."""
        return _blank_to_none(value)

    @field_validator("sort_by", mode="before")
    @classmethod
    def relevance_is_absent(cls, value: object) -> object:
        """``relevance`` is the server default and therefore stored as ``None``."""
        value = _blank_to_none(value)
        if value == SortBy.RELEVANCE or value == SortBy.RELEVANCE.value:
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value: object) -> object:
        """Strip and de-duplicate tags, collapsing an empty list to ``None``."""
        if value is None:
            return None
        if isinstance(value, (str, list, tuple, set, frozenset)):
            return normalize_tags(sorted(value) if isinstance(value, (set, frozenset)) else value)
        return value

    @model_validator(mode="after")
    def check_ranges(self) -> "SearchFilters":
        """Reject inverted price or date ranges."""
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("minPrice must be less than or equal to maxPrice")
        if self.date_from is not None and self.date_to is not None and self.date_from > self.date_to:
            raise ValueError("dateFrom must be on or before dateTo")
        return self

    @property
    def is_empty(self) -> bool:
        """Return whether no constraint is set."""
        return self.active_count == 0

    @property
    def active_count(self) -> int:
        """Number of constrained fields (shown as a badge next to the filter toggle)."""
        return sum(1 for name in type(self).model_fields if getattr(self, name) is not None)

    @property
    def effective_sort(self) -> SortBy:
        """Return the ordering the server applies, resolving ``None`` to relevance."""
        return self.sort_by or SortBy.RELEVANCE

    def merged(self, changes: "SearchFilters | Mapping[str, object]") -> "SearchFilters":
        """Return a copy with *changes* applied; a ``None`` value clears a field.

        When *changes* is a :class:`SearchFilters`, only the fields explicitly
        passed to its constructor are applied.
        """
        if isinstance(changes, SearchFilters):
            updates = {name: getattr(changes, name) for name in changes.model_fields_set}
        else:
            updates = {_FIELD_BY_ALIAS.get(key, key): value for key, value in changes.items()}
        data = self.model_dump()
        data.update(updates)
        return SearchFilters.model_validate(data)


_FIELD_BY_ALIAS = {
    field.alias: name for name, field in SearchFilters.model_fields.items() if field.alias is not None
}


class SearchQuery(BaseModel):
    """Complete description of one search request."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    query: str = Field(default="", description="Free text; empty means browse with filters only.")
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    @property
    def searchable(self) -> bool:
        """Return whether the query carries any text or constraint worth sending."""
        return bool(self.query.strip()) or not self.filters.is_empty


class SearchResult(BaseModel):
    """Single hit returned by ``GET /search``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Identifier unique within a response.")
    title: str = Field(..., description="Display title of the item.")
    description: str = Field(default="", description="Short description or snippet.")
    url: str = Field(..., description="Link to the item detail page.")
    category: str | None = None
    tags: List[str] = Field(default_factory=list)
    score: float | None = Field(default=None, ge=0.0)
    relevance: float | None = Field(default=None, ge=0.0)
    price: float | None = Field(default=None, ge=0.0)
    date: str | None = Field(default=None, description="ISO date string as sent by the server.")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        """Accept numeric identifiers emitted by some backends."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def null_description(cls, value: object) -> object:
        """Map a ``null`` description to an empty string."""
        return "" if value is None else value


class SearchResponse(BaseModel):
    """Envelope returned by ``GET /search``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    results: List[SearchResult] = Field(default_factory=list, description="Hits in server order.")
    total: int = Field(..., ge=0, description="Total number of matches across all pages.")
    page: int = Field(default=1, ge=1)
    total_pages: int = Field(default=0, ge=0, alias="totalPages")
    has_more: bool = Field(default=False, alias="hasMore")

    @model_validator(mode="after")
    def check_consistency(self) -> "SearchResponse":
        """Enforce the pagination invariants of the search envelope."""
        if self.total < len(self.results):
            raise ValueError("total must be greater than or equal to the number of results")
        ids = [result.id for result in self.results]
        if len(set(ids)) != len(ids):
            raise ValueError("result ids must be unique within a response")
        expected = self.page < self.total_pages
        if "has_more" not in self.model_fields_set:
            self.has_more = expected
        elif self.has_more != expected:
            raise ValueError("hasMore must be true exactly when page < totalPages")
        return self


def _as_aware(value: datetime) -> datetime:
    """Attach UTC to naive timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SearchHistoryItem(BaseModel):
    """Append-only record written after each completed search."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str | None = None
    query: str
    timestamp: datetime
    results_count: int = Field(..., ge=0, alias="resultsCount")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        """Accept numeric identifiers."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        """Store timestamps as timezone-aware values."""
        return _as_aware(value)


class SearchSuggestion(BaseModel):
    """Completion proposed while the user types."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str
    text: str
    type: Literal["recent", "popular", "suggested"] = "suggested"

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        """Accept numeric identifiers."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


def format_number(value: float) -> str:
    """Render a price without a trailing ``.0`` (``1000.0`` -> ``"1000"``)."""
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


__all__ = [
    "SortBy",
    "SortOrder",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SearchResponse",
    "SearchHistoryItem",
    "SearchSuggestion",
    "format_number",
    "normalize_tags",
]
