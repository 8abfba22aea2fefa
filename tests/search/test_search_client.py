"""Unit tests covering the storefront search HTTP client."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import httpx
import pytest
from conftest import API_URL, make_envelope, make_result

from storefront_search.schemas.search import SearchFilters, SearchQuery, SortBy
from storefront_search.services.search.client import SearchApiClient, build_search_params
from storefront_search.utils.errors import NetworkError, NotFoundError, ValidationError


def test_build_search_params_sends_only_set_filters() -> None:
    query = SearchQuery(
        query="テスト商品",
        filters=SearchFilters(category="electronics", min_price=1000, max_price=5000, tags=["sale", "new"]),
        page=2,
        limit=20,
    )
    assert build_search_params(query) == [
        ("q", "テスト商品"),
        ("page", "2"),
        ("limit", "20"),
        ("category", "electronics"),
        ("minPrice", "1000"),
        ("maxPrice", "5000"),
        ("tags", "sale"),
        ("tags", "new"),
    ]


def test_build_search_params_includes_dates_and_sort() -> None:
    filters = SearchFilters(date_from=date(2024, 1, 1), sort_by=SortBy.DATE_DESC, sort_order="desc")
    params = dict(build_search_params(SearchQuery(filters=filters)))
    assert params["q"] == ""
    assert params["dateFrom"] == "2024-01-01"
    assert params["sortBy"] == "date_desc"
    assert params["sortOrder"] == "desc"
    assert "dateTo" not in params


@pytest.mark.anyio
async def test_search_returns_parsed_envelope_and_records_history() -> None:
    """A search hits ``GET /search`` and appends a history entry in the background."""
    history_bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            assert request.url.path == "/api/search"
            assert request.url.params["q"] == "カメラ"
            assert request.url.params.get_list("tags") == ["sale"]
            return httpx.Response(200, json=make_envelope([make_result(1), make_result(2)], total=12, total_pages=2))
        assert request.method == "POST"
        assert request.url.path == "/api/search/history"
        body = json.loads(request.content)
        history_bodies.append(body)
        return httpx.Response(201, json={"id": 1, **body})

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    response = await client.search(SearchQuery(query="カメラ", filters=SearchFilters(tags=["sale"])))
    await client.aclose()

    assert [result.id for result in response.results] == ["1", "2"]
    assert response.total == 12
    assert response.has_more is True
    assert history_bodies[0]["query"] == "カメラ"
    assert history_bodies[0]["resultsCount"] == 12
    assert str(history_bodies[0]["timestamp"]).endswith("Z")
    assert client.pending_history_writes == 0


@pytest.mark.anyio
async def test_filter_only_search_does_not_record_history() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200, json=make_envelope([]))

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    await client.search(SearchQuery(filters=SearchFilters(category="books")))
    await client.aclose()
    assert methods == ["GET"]


@pytest.mark.anyio
async def test_history_write_failure_does_not_fail_search(captured_logs) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(500, text="db down")
        return httpx.Response(200, json=make_envelope([make_result(1)]))

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    response = await client.search(SearchQuery(query="bag"))
    await client.aclose()

    assert response.total == 1
    messages = [record["message"] for record in captured_logs()]
    assert "history.write_failed" in messages


@pytest.mark.anyio
async def test_server_failure_raises_network_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc_info:
        await client.search(SearchQuery(query="bag"))

    assert "503" in str(exc_info.value)
    assert exc_info.value.details == {"status_code": 503, "path": "/search"}
    assert client.pending_history_writes == 0


@pytest.mark.anyio
async def test_transport_errors_are_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc_info:
        await client.search(SearchQuery(query="bag"))
    assert "boom" in str(exc_info.value)


@pytest.mark.anyio
async def test_invalid_base_url_is_wrapped() -> None:
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    client = SearchApiClient(API_URL + "\x00", transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError):
        await client.search(SearchQuery(query="bag"))


@pytest.mark.anyio
async def test_malformed_payload_raises_invalid_response() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": "nope"})

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc_info:
        await client.search(SearchQuery(query="bag"))
    assert exc_info.value.code == "invalid_response"


@pytest.mark.anyio
async def test_non_json_body_raises_invalid_response() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc_info:
        await client.suggestions("ba")
    assert exc_info.value.code == "invalid_response"


@pytest.mark.anyio
async def test_suggestions_and_catalogue_lists() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/search/suggestions":
            assert request.url.params["q"] == "カメ"
            return httpx.Response(200, json=[{"id": 1, "text": "カメラ", "type": "popular"}])
        if path == "/api/search/categories":
            return httpx.Response(200, json=["electronics", "books"])
        if path == "/api/search/tags":
            return httpx.Response(200, json=["sale"])
        return httpx.Response(404)

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    suggestions = await client.suggestions("カメ")
    assert [(item.id, item.text, item.type) for item in suggestions] == [("1", "カメラ", "popular")]
    assert await client.categories() == ["electronics", "books"]
    assert await client.tags() == ["sale"]


@pytest.mark.anyio
async def test_history_listing_and_clearing() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, str(request.url.params)))
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(
            200,
            json=[{"id": 1, "query": "カメラ", "timestamp": "2024-01-01T00:00:00Z", "resultsCount": 4}],
        )

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    items = await client.history(5)
    await client.clear_history()

    assert items[0].query == "カメラ"
    assert items[0].timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert seen == [("GET", "limit=5"), ("DELETE", "")]


@pytest.mark.anyio
async def test_history_limit_validated_before_request() -> None:
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(ValidationError):
        await client.history(0)


@pytest.mark.anyio
async def test_missing_endpoint_raises_not_found() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "missing"})

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(NotFoundError):
        await client.tags()


@pytest.mark.anyio
async def test_redirect_is_not_treated_as_success() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "/login"})

    client = SearchApiClient(API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(NetworkError) as exc_info:
        await client.clear_history()
    assert exc_info.value.details == {"status_code": 302, "path": "/search/history"}
