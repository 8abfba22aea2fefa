"""Shared async HTTP plumbing for the storefront REST API clients."""

from __future__ import annotations

from typing import Mapping, TypeVar

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from storefront_search.types import JSONValue, QueryParams
from storefront_search.utils.errors import NetworkError, NotFoundError
from storefront_search.utils.logging import log_stage

M = TypeVar("M")

_DEFAULT_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class ApiTransport:
    """Small asynchronous wrapper around the storefront JSON API.

    Every call opens a short-lived :class:`httpx.AsyncClient`, which keeps the
    clients free of connection lifecycle concerns and lets tests inject an
    :class:`httpx.MockTransport`. Transport failures and non-2xx statuses are
    translated into :class:`NetworkError` (``404`` becomes
    :class:`NotFoundError`), so callers only ever see the project taxonomy.
    No retry happens at this layer.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided for ApiTransport")
        # ``rstrip('/')`` keeps the request assembly simple regardless of whether
        # operators configured the environment variable with a trailing slash.
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {**_DEFAULT_HEADERS, **(headers or {})}

    @property
    def base_url(self) -> str:
        """Return the normalised API root."""
        return self._base_url

    def url(self, path: str) -> str:
        """Join *path* onto the API root."""
        return f"{self._base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: QueryParams | None = None,
        json: JSONValue | None = None,
    ) -> httpx.Response:
        """Perform the request and return the successful response."""
        with log_stage(f"api.{method.lower()} {path}"):
            try:
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport, headers=self._headers
                ) as http_client:
                    response = await http_client.request(method, self.url(path), params=params, json=json)
            except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
                raise NetworkError(f"Failed to reach storefront API: {exc}") from exc
            if response.status_code == 404:
                raise NotFoundError(
                    f"Resource not found: {path}",
                    details={"status_code": 404, "path": path},
                )
            if not response.is_success:
                raise NetworkError(
                    f"Storefront API responded with {response.status_code}",
                    details={"status_code": response.status_code, "path": path},
                )
        return response

    async def get_json(self, path: str, *, params: QueryParams | None = None) -> object:
        """Issue a ``GET`` request and decode the JSON body."""
        response = await self.request("GET", path, params=params)
        return decode_json(response, path)

    async def post_json(self, path: str, body: JSONValue) -> object:
        """Issue a ``POST`` request with a JSON body and decode the JSON reply."""
        response = await self.request("POST", path, json=body)
        return decode_json(response, path)

    async def delete(self, path: str) -> None:
        """Issue a ``DELETE`` request, ignoring any body."""
        await self.request("DELETE", path)


def decode_json(response: httpx.Response, path: str) -> object:
    """Return the decoded body or raise ``NetworkError(code="invalid_response")``."""
    try:
        return response.json()
    except ValueError as exc:
        raise NetworkError(
            "Storefront API returned a body that is not valid JSON",
            details={"path": path, "status_code": response.status_code},
            code="invalid_response",
        ) from exc


def parse_payload(adapter: TypeAdapter[M], payload: object, *, path: str) -> M:
    """Validate *payload* against *adapter*, mapping failures to ``invalid_response``."""
    try:
        return adapter.validate_python(payload)
    except PydanticValidationError as exc:
        raise NetworkError(
            "Storefront API returned an unexpected payload",
            details={"path": path, "errors": exc.error_count()},
            code="invalid_response",
        ) from exc


__all__ = ["ApiTransport", "decode_json", "parse_payload"]
