"""Catalogue models consumed by the product listing and detail lookups."""

from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront_search.schemas.search import format_number
from storefront_search.types import QueryParams

ProductStatus = Literal["active", "inactive", "out_of_stock"]


def _coerce_id(value: object) -> object:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class ProductImage(BaseModel):
    """Image attached to a product."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    url: str
    alt: str | None = None
    is_primary: bool = Field(default=False, alias="isPrimary")
    order: int = 0

    coerce_id = field_validator("id", mode="before")(_coerce_id)


class Product(BaseModel):
    """Product as returned by ``GET /products/{id}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    description: str | None = None
    price: float = Field(..., ge=0)
    original_price: float | None = Field(default=None, ge=0, alias="originalPrice")
    discount: float | None = None
    category: str
    subcategory: str | None = None
    tags: List[str] = Field(default_factory=list)
    images: List[ProductImage] = Field(default_factory=list)
    stock: int = Field(default=0, ge=0)
    sku: str = ""
    brand: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    review_count: int | None = Field(default=None, ge=0, alias="reviewCount")
    features: List[str] = Field(default_factory=list)
    specifications: Dict[str, str] = Field(default_factory=dict)
    status: ProductStatus = "active"
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    coerce_id = field_validator("id", mode="before")(_coerce_id)

    @property
    def primary_image(self) -> ProductImage | None:
        """Return the image flagged as primary, falling back to the first one."""
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None


class ProductCategory(BaseModel):
    """Category node of the catalogue."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    slug: str
    description: str | None = None
    parent_id: str | None = Field(default=None, alias="parentId")
    product_count: int | None = Field(default=None, ge=0, alias="productCount")

    coerce_id = field_validator("id", "parent_id", mode="before")(_coerce_id)


class ProductListParams(BaseModel):
    """Query parameters accepted by ``GET /products``."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    page: int | None = Field(default=None, ge=1)
    limit: int | None = Field(default=None, ge=1)
    category: str | None = None
    subcategory: str | None = None
    brand: str | None = None
    min_price: float | None = Field(default=None, ge=0, alias="minPrice")
    max_price: float | None = Field(default=None, ge=0, alias="maxPrice")
    tags: List[str] | None = None
    search: str | None = None
    sort_by: Literal["name", "price", "rating", "created", "updated", "relevance"] | None = Field(
        default=None, alias="sortBy"
    )
    sort_order: Literal["asc", "desc"] | None = Field(default=None, alias="sortOrder")
    status: ProductStatus | None = None
    in_stock: bool | None = Field(default=None, alias="inStock")

    def to_query_params(self) -> QueryParams:
        """Serialise set parameters, repeating list values and skipping blanks."""
        params: QueryParams = []
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            key = field.alias or name
            if value is None or value == "":
                continue
            if isinstance(value, list):
                params.extend((key, str(item)) for item in value)
            elif isinstance(value, bool):
                params.append((key, "true" if value else "false"))
            elif isinstance(value, float):
                params.append((key, format_number(value)))
            else:
                params.append((key, str(value)))
        return params


class ProductListResponse(BaseModel):
    """Envelope returned by ``GET /products``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    products: List[Product] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    total_pages: int = Field(default=0, ge=0, alias="totalPages")
    has_next: bool = Field(default=False, alias="hasNext")
    has_prev: bool = Field(default=False, alias="hasPrev")


__all__ = [
    "Product",
    "ProductCategory",
    "ProductImage",
    "ProductListParams",
    "ProductListResponse",
    "ProductStatus",
]
