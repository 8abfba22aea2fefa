"""Error taxonomy shared by the search pipeline and the HTTP clients."""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from storefront_search.types import JSONDict, JSONValue
from storefront_search.utils.logging import get_trace_id


class SearchError(Exception):
    """Base application exception carrying a machine-friendly code."""

    status_code = 500
    code = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[JSONValue] = None,
        code: str | None = None,
    ) -> None:
        """Store *message*, structured *details* and an optional code override."""
        super().__init__(message)
        self.message = message
        self.details: JSONValue = details if details is not None else {}
        # e.g. ``NetworkError(..., code="invalid_response")`` for malformed bodies.
        self.code = code or self.__class__.code

    def to_payload(self) -> JSONDict:
        """Return the standard error document used by the CLI and the views."""
        return {
            "error": {"code": self.code, "message": self.message},
            "details": self.details,
            "trace_id": get_trace_id(),
        }


class ValidationError(SearchError):
    """Raised when filter or pagination input is rejected before any request."""

    status_code = 400
    code = "validation_error"


class NetworkError(SearchError):
    """Raised on transport failures and non-success HTTP statuses."""

    status_code = 502
    code = "network_error"


class NotFoundError(SearchError):
    """Raised when a specific lookup (e.g. a product id) does not exist."""

    status_code = 404
    code = "not_found"


class ParseError(SearchError):
    """Raised when a URL parameter cannot be decoded.

    The URL synchronizer catches it and falls back to the default value; it is
    never surfaced to callers of the session.
    """

    status_code = 400
    code = "parse_error"


def from_pydantic(exc: PydanticValidationError, message: str = "Invalid search filters") -> ValidationError:
    """Translate a pydantic validation failure into a :class:`ValidationError`."""
    details: list[object] = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return ValidationError(message, details=details)


__all__ = [
    "SearchError",
    "ValidationError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "from_pydantic",
]
