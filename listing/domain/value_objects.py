"""Value Objects for the domain layer.

Value objects are immutable and compared by their attributes. They carry
only intrinsic checks here; rules that depend on the taxonomy are enforced
by `listing.catalog.taxonomy.Taxonomy`.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Self

from listing.domain.exceptions import ValidationError


@dataclass(frozen=True)
class ValueObject:
    """Base class for value objects."""


# ============================================================================
# Catalog Attributes
# ============================================================================


@dataclass(frozen=True)
class CategoryRef(ValueObject):
    """Two-level category reference.

    Attributes:
        main: Main category name (e.g., "TOPS").
        sub: Sub-category name scoped to `main` (e.g., "TSHIRT").
    """

    main: str
    sub: str

    def __post_init__(self) -> None:
        """Reject blank category parts."""
        if not self.main or not self.main.strip():
            raise ValidationError("Main category is required", field="category.main")
        if not self.sub or not self.sub.strip():
            raise ValidationError("Sub-category is required", field="category.sub")

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"main": self.main, "sub": self.sub}


@dataclass(frozen=True)
class SizeOption(ValueObject):
    """A size label, e.g. SizeOption(name="Small", value="S")."""

    name: str
    value: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class Color(ValueObject):
    """A named color with its hex code. Vocabulary is unconstrained."""

    name: str
    hex: str

    def __post_init__(self) -> None:
        """Reject blank color parts."""
        if not self.name or not self.name.strip():
            raise ValidationError("Color name is required", field="colors")
        if not self.hex or not self.hex.strip():
            raise ValidationError(f"Color {self.name!r} has no hex code", field="colors")

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"name": self.name, "hex": self.hex}


@dataclass(frozen=True)
class ProductImage(ValueObject):
    """An image held by the object store.

    Attributes:
        storage_id: Object store identifier; must stay live while referenced.
        url: Public URL of the stored object.
    """

    storage_id: str
    url: str

    def __post_init__(self) -> None:
        """Reject images without a storage reference."""
        if not self.storage_id or not self.storage_id.strip():
            raise ValidationError("Image storage ID is required", field="images")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create from the persisted representation."""
        return cls(storage_id=data["storage_id"], url=data["url"])

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"storage_id": self.storage_id, "url": self.url}


@dataclass(frozen=True)
class Discount(ValueObject):
    """Discount state of a product.

    `discounted_price` is meaningful only when `is_discounted` is set; an
    inactive discount never carries a price.
    """

    is_discounted: bool = False
    discounted_price: Decimal | None = None

    def __post_init__(self) -> None:
        """Validate discount constraints."""
        if not self.is_discounted:
            object.__setattr__(self, "discounted_price", None)
            return
        if self.discounted_price is None:
            raise ValidationError(
                "Discounted price is required when a discount is active",
                field="discounted_price",
            )
        if not self.discounted_price.is_finite():
            raise ValidationError(
                "Discounted price must be a number", field="discounted_price"
            )
        if self.discounted_price < 0:
            raise ValidationError(
                "Discounted price cannot be negative", field="discounted_price"
            )


# ============================================================================
# Media
# ============================================================================


@dataclass(frozen=True)
class MediaFile(ValueObject):
    """An image file received from the caller, not yet stored."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
