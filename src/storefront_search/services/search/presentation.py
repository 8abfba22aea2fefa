"""Pure rendering contract for search results.

Nothing in this module decides *when* a state changes; it only maps the
inputs handed over by the session (in-flight flag, last error, last response)
onto one of the mutually exclusive view states.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import List, Tuple

from storefront_search.schemas.search import SearchResponse, SearchResult
from storefront_search.utils.errors import SearchError

LOADING_MESSAGE = "読み込み中..."
IDLE_MESSAGE = "検索を開始してください"
EMPTY_MESSAGE = "検索結果が見つかりませんでした"
ERROR_MESSAGE = "エラーが発生しました"


class ResultsStatus(str, Enum):
    """Mutually exclusive states of the results area."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class ResultsView:
    """Immutable description of what the results area shows."""

    status: ResultsStatus
    results: Tuple[SearchResult, ...] = ()
    total: int = 0
    page: int = 1
    total_pages: int = 0
    has_more: bool = False
    message: str | None = None
    error: SearchError | None = None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error is not None else None


IDLE_VIEW = ResultsView(status=ResultsStatus.IDLE, message=IDLE_MESSAGE)


def present(
    *,
    loading: bool,
    error: SearchError | None,
    response: SearchResponse | None,
    idle: bool = False,
) -> ResultsView:
    """Select the view state using the priority loading, error, empty, populated.

    ``idle`` only applies when nothing else does (no fetch in flight, no error,
    no response). Results are kept in server order; the error state never
    carries results.
    """
    if loading:
        return ResultsView(status=ResultsStatus.LOADING, message=LOADING_MESSAGE)
    if error is not None:
        return ResultsView(status=ResultsStatus.ERROR, message=ERROR_MESSAGE, error=error)
    if response is None:
        return IDLE_VIEW if idle else ResultsView(status=ResultsStatus.IDLE)
    status = ResultsStatus.POPULATED if response.results else ResultsStatus.EMPTY
    return ResultsView(
        status=status,
        results=tuple(response.results),
        total=response.total,
        page=response.page,
        total_pages=response.total_pages,
        has_more=response.has_more,
        message=EMPTY_MESSAGE if status is ResultsStatus.EMPTY else None,
    )


def format_price(amount: float) -> str:
    """Format a yen amount with thousands separators (``1234`` -> ``¥1,234``)."""
    return f"¥{round(amount):,}"


def format_date(value: str | date | datetime | None) -> str | None:
    """Render an ISO date as ``YYYY/M/D``; unparsable input is returned as is."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            parsed: date = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    else:
        parsed = value
    return f"{parsed.year}/{parsed.month}/{parsed.day}"


def _render_result(index: int, result: SearchResult) -> List[str]:
    lines = [f"{index}. {result.title}"]
    if result.description:
        lines.append(f"   {result.description}")
    labels = ([result.category] if result.category else []) + list(result.tags)
    if labels:
        lines.append("   " + " ".join(f"[{label}]" for label in labels))
    meta: List[str] = []
    if result.score is not None:
        meta.append(f"スコア: {result.score:.2f}")
    if result.price is not None:
        meta.append(format_price(result.price))
    rendered_date = format_date(result.date)
    if rendered_date:
        meta.append(rendered_date)
    if meta:
        lines.append("   " + " | ".join(meta))
    lines.append(f"   {result.url}")
    return lines


def render_text(view: ResultsView, query: str = "") -> str:
    """Render *view* as plain text for terminals."""
    lines: List[str] = []
    if query and view.status in (ResultsStatus.EMPTY, ResultsStatus.POPULATED):
        lines.append(f"「{query}」の検索結果 ({view.total}件)")
    if view.status is ResultsStatus.ERROR:
        lines.append(ERROR_MESSAGE)
        if view.error_message:
            lines.append(view.error_message)
    elif view.status is ResultsStatus.POPULATED:
        for index, result in enumerate(view.results, start=1):
            lines.extend(_render_result(index, result))
        if view.total_pages:
            lines.append(f"{view.page} / {view.total_pages} ページ")
    else:
        lines.append(view.message or IDLE_MESSAGE)
    return "\n".join(lines)


__all__ = [
    "EMPTY_MESSAGE",
    "ERROR_MESSAGE",
    "IDLE_MESSAGE",
    "IDLE_VIEW",
    "LOADING_MESSAGE",
    "ResultsStatus",
    "ResultsView",
    "format_date",
    "format_price",
    "present",
    "render_text",
]
