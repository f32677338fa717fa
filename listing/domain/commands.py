"""Input objects for product mutations.

`ProductDraft` carries everything a create needs. `ProductPatch` lists every
field an update may touch; `None` means "leave unchanged". Both arrive
already parsed from the boundary layer.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import ClassVar

from listing.domain.value_objects import CategoryRef, Color, ProductImage, SizeOption


@dataclass
class ProductDraft:
    """Fields supplied when creating a product.

    Required fields are typed optional so missing ones can be reported as a
    ValidationError instead of failing construction.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "description", "price", "category", "stock")

    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    category: CategoryRef | None = None
    stock: int | None = None
    is_discounted: bool = False
    discounted_price: Decimal | None = None
    colors: list[Color] | None = None
    sizes: list[SizeOption] | None = None
    is_new_arrival: bool = False

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or blank."""
        missing = []
        for name in self.REQUIRED:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing


@dataclass
class ProductPatch:
    """Partial update of a product.

    `existing_images` is the retained set: `None` keeps the current images
    and appends new uploads, a list (even empty) replaces them.
    """

    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    category: CategoryRef | None = None
    stock: int | None = None
    is_discounted: bool | None = None
    discounted_price: Decimal | None = None
    colors: list[Color] | None = None
    sizes: list[SizeOption] | None = None
    is_new_arrival: bool | None = None
    existing_images: list[ProductImage] | None = None

    @property
    def declares_retained_images(self) -> bool:
        """Whether the caller declared which existing images to keep."""
        return self.existing_images is not None

    def changed_fields(self) -> list[str]:
        """Names of the fields this patch sets."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]
