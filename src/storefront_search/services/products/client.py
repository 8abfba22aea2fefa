"""HTTP client for the catalogue endpoints used by product pages."""

from __future__ import annotations

from typing import List
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter

from storefront_search.config import Settings, get_settings
from storefront_search.schemas.products import (
    Product,
    ProductCategory,
    ProductListParams,
    ProductListResponse,
)
from storefront_search.services.http import ApiTransport, parse_payload
from storefront_search.utils.errors import ValidationError

_PRODUCT = TypeAdapter(Product)
_PRODUCT_LIST = TypeAdapter(ProductListResponse)
_CATEGORY = TypeAdapter(ProductCategory)
_CATEGORIES = TypeAdapter(List[ProductCategory])


class ProductsClient:
    """Asynchronous wrapper around ``/products``.

    Lookups of a single resource raise
    :class:`~storefront_search.utils.errors.NotFoundError` when the API answers
    ``404``; every other failure is a
    :class:`~storefront_search.utils.errors.NetworkError`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api = ApiTransport(base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ProductsClient":
        active = settings or get_settings()
        return cls(active.api_base_url, timeout=active.api_timeout, transport=transport)

    async def list_products(self, params: ProductListParams | None = None) -> ProductListResponse:
        """Return one page of products matching *params*."""
        query = (params or ProductListParams()).to_query_params()
        payload = await self._api.get_json("/products", params=query or None)
        return parse_payload(_PRODUCT_LIST, payload, path="/products")

    async def get_product(self, product_id: str) -> Product:
        """Return the product identified by *product_id*."""
        path = f"/products/{_segment(product_id, 'product_id')}"
        return parse_payload(_PRODUCT, await self._api.get_json(path), path=path)

    async def list_categories(self) -> List[ProductCategory]:
        """Return every catalogue category."""
        payload = await self._api.get_json("/products/categories")
        return parse_payload(_CATEGORIES, payload, path="/products/categories")

    async def get_category(self, slug: str) -> ProductCategory:
        """Return the category identified by *slug*."""
        path = f"/products/categories/{_segment(slug, 'slug')}"
        return parse_payload(_CATEGORY, await self._api.get_json(path), path=path)


def _segment(value: str, name: str) -> str:
    """Return *value* escaped for use as a single path segment."""
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{name} must not be empty")
    return quote(trimmed, safe="")


__all__ = ["ProductsClient"]
