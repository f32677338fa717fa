"""Domain layer - value objects, mutation inputs and exceptions.

Example usage:
    from listing.domain import CategoryRef, ProductDraft

    draft = ProductDraft(
        name="Tee",
        description="Cotton tee",
        price=Decimal("20"),
        category=CategoryRef(main="TOPS", sub="TSHIRT"),
        stock=5,
    )
"""

from listing.domain.commands import ProductDraft, ProductPatch
from listing.domain.exceptions import (
    AuthorizationError,
    DomainError,
    MediaReleaseWarning,
    MediaUploadError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from listing.domain.value_objects import (
    CategoryRef,
    Color,
    Discount,
    MediaFile,
    ProductImage,
    SizeOption,
    ValueObject,
)

__all__ = [
    # Value objects
    "ValueObject",
    "CategoryRef",
    "Color",
    "Discount",
    "MediaFile",
    "ProductImage",
    "SizeOption",
    # Inputs
    "ProductDraft",
    "ProductPatch",
    # Exceptions
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "MediaUploadError",
    "MediaReleaseWarning",
    "StoreError",
]
