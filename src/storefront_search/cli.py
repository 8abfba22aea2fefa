"""Command-line interface for the storefront search API.

Usage:
    # Free-text search with filters
    storefront-search search "テスト商品" --category electronics --min-price 1000 --max-price 5000

    # Replay a shared search page URL
    storefront-search search --url "q=%E3%82%AD%E3%83%BC&category=electronics"

    # Machine-readable output
    storefront-search search "camera" --format json

    # History, suggestions and catalogue lookups
    storefront-search history --limit 5
    storefront-search suggest "cam"
    storefront-search product 42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from typing import Dict, List, Sequence, TextIO

import httpx
from loguru import logger

from storefront_search import __version__
from storefront_search.config import Settings, get_settings
from storefront_search.schemas.search import SortBy, SortOrder
from storefront_search.services.products import ProductsClient
from storefront_search.services.search import MemoryLocation, SearchApiClient, SearchSession, render_text
from storefront_search.services.search.presentation import format_price
from storefront_search.utils.errors import NetworkError, NotFoundError, SearchError, ValidationError
from storefront_search.utils.logging import configure_logging

EXIT_OK = 0
EXIT_UPSTREAM = 1
EXIT_INVALID = 2


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for every sub-command."""
    parser = argparse.ArgumentParser(
        prog="storefront-search",
        description="Search the storefront catalogue from the terminal.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--api-url", help="Override STOREFRONT_API_URL for this invocation.")
    parser.add_argument("--verbose", action="store_true", help="Emit JSON logs on stdout.")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Run one search and print the results.")
    search.add_argument("text", nargs="?", default=None, help="Free-text query.")
    search.add_argument("--url", dest="querystring", help="Seed the search from a page query string.")
    search.add_argument("--category")
    search.add_argument("--min-price", type=float)
    search.add_argument("--max-price", type=float)
    search.add_argument("--sort", choices=[item.value for item in SortBy])
    search.add_argument("--order", choices=[item.value for item in SortOrder])
    search.add_argument("--tag", action="append", dest="tags", default=None)
    search.add_argument("--date-from", type=date.fromisoformat)
    search.add_argument("--date-to", type=date.fromisoformat)
    search.add_argument("--page", type=int)
    search.add_argument("--format", choices=["text", "json"], default="text")

    suggest = commands.add_parser("suggest", help="Print completions for a partial query.")
    suggest.add_argument("text")

    history = commands.add_parser("history", help="Show or clear the search history.")
    history.add_argument("--limit", type=int, default=None)
    history.add_argument("--clear", action="store_true")

    commands.add_parser("categories", help="List search categories.")
    commands.add_parser("tags", help="List popular tags.")

    product = commands.add_parser("product", help="Show one product.")
    product.add_argument("product_id")
    return parser


def _filter_changes(args: argparse.Namespace) -> Dict[str, object]:
    """Collect the filter flags that were given on the command line."""
    candidates: Dict[str, object] = {
        "category": args.category,
        "min_price": args.min_price,
        "max_price": args.max_price,
        "sort_by": args.sort,
        "sort_order": args.order,
        "tags": args.tags,
        "date_from": args.date_from,
        "date_to": args.date_to,
    }
    return {name: value for name, value in candidates.items() if value is not None}


async def _run_search(
    args: argparse.Namespace,
    settings: Settings,
    out: TextIO,
    transport: httpx.AsyncBaseTransport | None,
) -> int:
    querystring = args.querystring or ""
    if querystring and not querystring.startswith("?"):
        querystring = f"?{querystring}"
    location = MemoryLocation(f"{settings.search_path}{querystring}")
    client = SearchApiClient.from_settings(settings, transport=transport)
    session = SearchSession(client, location=location, settings=settings)
    try:
        # Flags are applied after mount so they override the replayed URL.
        await session.mount()
        if args.text is not None:
            session.on_search(args.text)
        changes = _filter_changes(args)
        if changes:
            session.on_filters_change(changes)
        if args.page is not None:
            session.set_page(args.page)
        if session.typing:
            await session.submit()
        await session.wait_idle()
        view = session.view
    finally:
        await session.aclose()
        await client.aclose()
    if args.format == "json":
        payload: Dict[str, object] = {
            "url": location.href,
            "status": view.status.value,
            "total": view.total,
            "page": view.page,
            "totalPages": view.total_pages,
            "hasMore": view.has_more,
            "results": [result.model_dump(mode="json", by_alias=True) for result in view.results],
        }
        if view.error is not None:
            payload["error"] = view.error.to_payload()
        out.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
    else:
        out.write(f"{location.href}\n")
        out.write(render_text(view, session.state.query) + "\n")
    if view.error is not None:
        return EXIT_UPSTREAM
    return EXIT_OK


async def _run(
    args: argparse.Namespace,
    settings: Settings,
    out: TextIO,
    transport: httpx.AsyncBaseTransport | None,
) -> int:
    if args.command == "search":
        return await _run_search(args, settings, out, transport)
    client = SearchApiClient.from_settings(settings, transport=transport)
    if args.command == "suggest":
        for suggestion in await client.suggestions(args.text):
            out.write(f"{suggestion.text}\t{suggestion.type}\n")
    elif args.command == "history":
        if args.clear:
            await client.clear_history()
            out.write("history cleared\n")
        else:
            limit = settings.search_history_limit if args.limit is None else args.limit
            for item in await client.history(limit):
                out.write(f"{item.timestamp.isoformat()}\t{item.results_count}\t{item.query}\n")
    elif args.command == "categories":
        lines: List[str] = await client.categories()
        out.write("".join(f"{line}\n" for line in lines))
    elif args.command == "tags":
        lines = await client.tags()
        out.write("".join(f"{line}\n" for line in lines))
    elif args.command == "product":
        products = ProductsClient.from_settings(settings, transport=transport)
        item = await products.get_product(args.product_id)
        out.write(f"{item.name}\n{format_price(item.price)}\t{item.category}\t在庫 {item.stock}\n")
        if item.description:
            out.write(f"{item.description}\n")
    return EXIT_OK


def main(
    argv: Sequence[str] | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Entry point of the ``storefront-search`` console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    out = stdout or sys.stdout
    settings = get_settings()
    if args.api_url:
        settings = settings.model_copy(update={"api_base_url": args.api_url.rstrip("/")})
    if args.verbose:
        configure_logging(settings)
    else:
        logger.remove()
        logger.add(sys.stderr, level="WARNING")
    try:
        return asyncio.run(_run(args, settings, out, transport))
    except ValidationError as exc:
        out.write(f"invalid input: {exc.message}\n")
        return EXIT_INVALID
    except (NetworkError, NotFoundError) as exc:
        out.write(f"{exc.code}: {exc.message}\n")
        return EXIT_UPSTREAM
    except SearchError as exc:
        out.write(f"{exc.code}: {exc.message}\n")
        return EXIT_UPSTREAM


if __name__ == "__main__":
    sys.exit(main())
