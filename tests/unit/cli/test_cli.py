"""Tests for the ``storefront-search`` command-line interface."""

from __future__ import annotations

import io
import json

import httpx
import pytest
from conftest import make_envelope, make_result

from storefront_search.cli import EXIT_INVALID, EXIT_OK, EXIT_UPSTREAM, main
from storefront_search.services.search.presentation import ERROR_MESSAGE


class RecordingApi:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "failure"})
        path = request.url.path
        if path.endswith("/search/history") and request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(201, json={"id": 1, **body})
        if path.endswith("/search/history"):
            return httpx.Response(
                200, json=[{"id": 1, "query": "カメラ", "timestamp": "2024-01-01T00:00:00Z", "resultsCount": 2}]
            )
        if path.endswith("/search/suggestions"):
            return httpx.Response(200, json=[{"id": "1", "text": "カメラ", "type": "recent"}])
        if path.endswith("/search"):
            return httpx.Response(200, json=make_envelope([make_result(1, "テスト商品", price=1200)]))
        return httpx.Response(404)

    @property
    def searches(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith("/search")]


def _run(argv: list[str], api: RecordingApi) -> tuple[int, str]:
    out = io.StringIO()
    code = main(argv, transport=httpx.MockTransport(api), stdout=out)
    return code, out.getvalue()


def test_search_prints_url_and_results() -> None:
    api = RecordingApi()
    code, output = _run(["search", "テスト商品", "--category", "electronics"], api)

    assert code == EXIT_OK
    lines = output.splitlines()
    assert lines[0].startswith("/search?q=")
    assert lines[0].endswith("&category=electronics")
    assert "「テスト商品」の検索結果 (1件)" in output
    assert "¥1,200" in output
    assert len(api.searches) == 1
    assert api.searches[0].url.params["category"] == "electronics"


def test_search_json_output() -> None:
    api = RecordingApi()
    code, output = _run(["search", "bag", "--tag", "sale", "--tag", "new", "--format", "json"], api)

    payload = json.loads(output)
    assert code == EXIT_OK
    assert payload["status"] == "populated"
    assert payload["url"] == "/search?q=bag&tags=sale&tags=new"
    assert payload["results"][0]["title"] == "テスト商品"
    assert api.searches[0].url.params.get_list("tags") == ["sale", "new"]


def test_search_replays_url_and_drops_bad_params() -> None:
    api = RecordingApi()
    code, output = _run(["search", "--url", "q=bag&minPrice=abc&page=2"], api)

    assert code == EXIT_OK
    params = api.searches[0].url.params
    assert params["q"] == "bag"
    assert params["page"] == "2"
    assert "minPrice" not in params
    assert output.splitlines()[0] == "/search?q=bag&page=2"


def test_inverted_price_range_exits_with_validation_code() -> None:
    api = RecordingApi()
    code, output = _run(["search", "bag", "--min-price", "6000", "--max-price", "5000"], api)
    assert code == EXIT_INVALID
    assert "invalid input" in output
    assert api.searches == []


def test_upstream_failure_renders_error_view() -> None:
    api = RecordingApi(status_code=503)
    code, output = _run(["search", "bag"], api)
    assert code == EXIT_UPSTREAM
    assert ERROR_MESSAGE in output


def test_unknown_product_exits_with_upstream_code() -> None:
    api = RecordingApi(status_code=404)
    code, output = _run(["product", "999"], api)
    assert code == EXIT_UPSTREAM
    assert output.startswith("not_found:")


def test_history_and_suggest_commands() -> None:
    api = RecordingApi()
    code, output = _run(["history", "--limit", "3"], api)
    assert code == EXIT_OK
    assert output.strip().endswith("\t2\tカメラ")
    assert api.requests[-1].url.params["limit"] == "3"

    code, output = _run(["suggest", "カ"], api)
    assert code == EXIT_OK
    assert output == "カメラ\trecent\n"


def test_history_limit_must_be_positive() -> None:
    code, output = _run(["history", "--limit", "0"], RecordingApi())
    assert code == EXIT_INVALID


def test_usage_error_exits_with_two() -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["search", "--page", "two"])
    assert exc_info.value.code == 2
