"""Catalogue lookups backing the product list and detail pages."""

from .client import ProductsClient

__all__ = ["ProductsClient"]
