"""API schemas for the listing API.

Pydantic models for response serialization. Multipart request bodies are
parsed in the routers, since their structured fields arrive as JSON strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    current_page: int = Field(..., description="Current page number (1-based)")
    total_pages: int = Field(..., description="Total number of pages")
    total_products: int = Field(..., description="Total number of matching products")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")


# ============================================================================
# Product Schemas
# ============================================================================


class CategorySchema(BaseModel):
    """Two-level category."""

    main: str = Field(..., description="Main category (e.g., TOPS)")
    sub: str = Field(..., description="Sub-category (e.g., TSHIRT)")


class SizeSchema(BaseModel):
    """Size label."""

    name: str = Field(..., description="Display name (e.g., Small)")
    value: str = Field(..., description="Size value (e.g., S)")


class ColorSchema(BaseModel):
    """Named color."""

    name: str
    hex: str


class ImageSchema(BaseModel):
    """Stored product image."""

    storage_id: str = Field(..., description="Object store identifier")
    url: str = Field(..., description="Public image URL")


class DiscountSchema(BaseModel):
    """Discount state."""

    is_discounted: bool = False
    discounted_price: Decimal | None = None


class ProductResponse(BaseModel):
    """Product details."""

    id: str = Field(..., description="Product identifier")
    owner_id: str = Field(..., description="Account that listed the product")
    name: str
    description: str
    price: Decimal
    discount: DiscountSchema
    category: CategorySchema
    sizes: list[SizeSchema] = Field(default_factory=list)
    colors: list[ColorSchema] = Field(default_factory=list)
    images: list[ImageSchema] = Field(default_factory=list)
    stock: int
    is_new_arrival: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductListResponse(PaginatedResponse):
    """Paginated list of products."""

    items: list[ProductResponse] = Field(..., description="Products on this page")


class ProductItemsResponse(BaseModel):
    """Unpaginated list of products."""

    items: list[ProductResponse]


class ReleaseWarningSchema(BaseModel):
    """Storage objects left behind by a committed change."""

    message: str
    failed_storage_ids: list[str] = Field(default_factory=list)


class ProductMutationResponse(BaseModel):
    """Result of a create or update."""

    product: ProductResponse
    warning: ReleaseWarningSchema | None = Field(
        default=None, description="Set when replaced images could not be deleted"
    )


class ProductDeleteResponse(BaseModel):
    """Result of a delete."""

    product_id: str
    deleted: bool = True
    warning: ReleaseWarningSchema | None = Field(
        default=None, description="Set when product images could not be deleted"
    )

