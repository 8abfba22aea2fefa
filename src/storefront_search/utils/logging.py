"""Structured logging utilities leveraging loguru.

Every remote call issued by the search pipeline runs inside :func:`log_stage`
so the emitted records carry the latency and the search context (query text,
page and dispatch generation) of the request that produced them. The context
lives in :class:`contextvars.ContextVar` objects, which asyncio copies into
each task, so concurrent searches never bleed metadata into one another.
"""

from __future__ import annotations

import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator

from loguru import logger

from storefront_search.config import Settings, get_settings


@dataclass
class SearchLogContext:
    """Metadata attached to every stage record of one search dispatch.

    Attributes
    ----------
    query:
        Free-text query of the search being executed.
    page:
        Result page requested from the API.
    generation:
        Monotonic dispatch counter assigned by the session. Lets operators
        correlate a stale (discarded) response with the request that issued it.
    stage:
        Stage currently wrapped by :func:`log_stage`, if any.
    stage_started_at:
        ``time.perf_counter`` reading taken when that stage started.

    """

    query: str | None = None
    page: int | None = None
    generation: int | None = None
    stage: str | None = None
    stage_started_at: float | None = None


_TRACE_ID: ContextVar[str] = ContextVar("trace_id", default="unknown")
_SEARCH_CONTEXT: ContextVar[SearchLogContext | None] = ContextVar("search_context", default=None)


def configure_logging(settings: Settings | None = None) -> None:
    """Replace the loguru sinks with one JSON sink on stdout."""
    active = settings or get_settings()
    logger.remove()
    logger.add(sys.stdout, level=active.log_level.upper(), serialize=True)


def get_trace_id() -> str:
    """Return the current trace identifier."""
    return _TRACE_ID.get()


def new_trace_id() -> str:
    """Assign a fresh trace identifier to the current context and return it."""
    trace_id = str(uuid.uuid4())
    _TRACE_ID.set(trace_id)
    return trace_id


def get_search_context() -> SearchLogContext:
    """Return the current structured logging context."""
    context = _SEARCH_CONTEXT.get()
    if context is None:
        context = SearchLogContext()
        _SEARCH_CONTEXT.set(context)
    return context


def set_search_metadata(
    *,
    query: str | None = None,
    page: int | None = None,
    generation: int | None = None,
) -> None:
    """Enrich the structured context with search information.

    Tasks inherit a *copy* of the context variables but share the same
    :class:`SearchLogContext` object, so a fresh instance is installed before
    mutating it.
    """
    current = get_search_context()
    context = SearchLogContext(
        query=current.query if query is None else query,
        page=current.page if page is None else page,
        generation=current.generation if generation is None else generation,
    )
    _SEARCH_CONTEXT.set(context)


def _emit_stage(stage: str, started_at: float, message: str, *, failed: bool) -> None:
    context = get_search_context()
    bound = logger.bind(
        trace_id=get_trace_id(),
        stage=stage,
        latency_ms=(time.perf_counter() - started_at) * 1000,
        query=context.query,
        page=context.page,
        generation=context.generation,
    )
    if failed:
        bound.exception(message)
    else:
        bound.info(message)


@contextmanager
def log_stage(stage: str) -> Iterator[None]:
    """Time the wrapped block and log ``stage.completed`` or ``stage.failed``.

    Failures are logged with their traceback and re-raised unchanged.
    """
    context = get_search_context()
    saved = (context.stage, context.stage_started_at)
    started_at = time.perf_counter()
    context.stage, context.stage_started_at = stage, started_at
    try:
        yield
    except Exception:
        _emit_stage(stage, started_at, "stage.failed", failed=True)
        raise
    else:
        _emit_stage(stage, started_at, "stage.completed", failed=False)
    finally:
        context.stage, context.stage_started_at = saved


__all__ = [
    "SearchLogContext",
    "configure_logging",
    "get_trace_id",
    "new_trace_id",
    "get_search_context",
    "set_search_metadata",
    "log_stage",
]
