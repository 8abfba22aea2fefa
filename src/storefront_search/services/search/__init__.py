"""Search pipeline: state container, URL synchronisation, API client and session."""

from .client import SearchApiClient, SearchClientProtocol, build_search_params
from .presentation import ResultsStatus, ResultsView, present, render_text
from .session import SearchSession, SuggestionFeed
from .state import SearchState, StateChange
from .url_sync import MemoryLocation, UrlSynchronizer, decode_state, encode_state

__all__ = [
    "MemoryLocation",
    "ResultsStatus",
    "ResultsView",
    "SearchApiClient",
    "SearchClientProtocol",
    "SearchSession",
    "SearchState",
    "StateChange",
    "SuggestionFeed",
    "UrlSynchronizer",
    "build_search_params",
    "decode_state",
    "encode_state",
    "present",
    "render_text",
]
