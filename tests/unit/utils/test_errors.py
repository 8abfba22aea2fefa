"""Tests for the error taxonomy."""

from __future__ import annotations

import pytest
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from storefront_search.utils.errors import (
    NetworkError,
    NotFoundError,
    ParseError,
    SearchError,
    ValidationError,
    from_pydantic,
)


@pytest.mark.parametrize(
    ("error_cls", "status_code", "code"),
    [
        (ValidationError, 400, "validation_error"),
        (NetworkError, 502, "network_error"),
        (NotFoundError, 404, "not_found"),
        (ParseError, 400, "parse_error"),
    ],
)
def test_error_classes_expose_status_and_code(error_cls: type[SearchError], status_code: int, code: str) -> None:
    error = error_cls("boom")
    assert isinstance(error, SearchError)
    assert error.status_code == status_code
    assert error.code == code
    assert error.details == {}


def test_code_can_be_overridden_per_instance() -> None:
    """A specific machine code does not require a dedicated subclass."""
    error = NetworkError("bad body", code="invalid_response")
    assert error.code == "invalid_response"
    assert NetworkError.code == "network_error"


def test_payload_contains_code_message_and_details() -> None:
    error = NotFoundError("Resource not found: /products/9", details={"status_code": 404})
    payload = error.to_payload()
    assert payload["error"] == {"code": "not_found", "message": "Resource not found: /products/9"}
    assert payload["details"] == {"status_code": 404}
    assert "trace_id" in payload


def test_from_pydantic_lists_each_problem() -> None:
    class Sample(BaseModel):
        price: float = Field(ge=0)

    with pytest.raises(PydanticValidationError) as exc_info:
        Sample(price=-1)

    error = from_pydantic(exc_info.value)
    assert isinstance(error, ValidationError)
    assert error.message == "Invalid search filters"
    assert isinstance(error.details, list)
    assert error.details[0]["loc"] == ["price"]  # type: ignore[index]
    assert error.details[0]["type"] == "greater_than_equal"  # type: ignore[index]
