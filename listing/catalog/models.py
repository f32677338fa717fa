"""SQLAlchemy models for the product catalog.

Defines the Product and ProductSize tables. Sizes live in their own table so
size filters are a relational EXISTS; colors and images are ordered JSON
lists on the product row.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from listing.domain.value_objects import CategoryRef, Color, Discount, ProductImage, SizeOption
from listing.infrastructure.database import Base


def build_search_text(name: str, description: str, category: CategoryRef) -> str:
    """Derive the free-text search field of a product.

    Lower-cased, whitespace-collapsed join of name, description, main
    category and sub-category, with taxonomy underscores read as spaces.

    Example:
        build_search_text("Tee", "Cotton tee", CategoryRef("TOPS", "POLO_SHIRT"))
        # -> "tee cotton tee tops polo shirt"
    """
    parts = [
        name or "",
        description or "",
        category.main.replace("_", " "),
        category.sub.replace("_", " "),
    ]
    return re.sub(r"\s+", " ", " ".join(parts)).strip().lower()


class Product(Base):
    """A product listed by an account.

    Attributes:
        id: Unique product identifier (UUID string), immutable.
        owner_id: Account that listed the product; the only one allowed to change it.
        name: Product name.
        description: Product description.
        price: Non-negative price.
        is_discounted: Whether a discount is active.
        discounted_price: Price while discounted (None when no discount).
        category_main: Main category.
        category_sub: Sub-category, always allowed under `category_main`.
        colors: Ordered list of {"name", "hex"}.
        images: Ordered list of {"storage_id", "url"}; every entry is live in the object store.
        stock: Units available.
        is_new_arrival: Curated "new arrival" flag, independent of created_at.
        search_text: Derived on every write from name, description and category.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, index=True)
    is_discounted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    discounted_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    category_main: Mapped[str] = mapped_column(String(50), nullable=False)
    category_sub: Mapped[str] = mapped_column(String(50), nullable=False)
    colors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_new_arrival: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    search_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    sizes: Mapped[list["ProductSize"]] = relationship(
        "ProductSize",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductSize.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_products_owner_category", "owner_id", "category_main", "category_sub"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, name={self.name[:30]}...)>"

    # ------------------------------------------------------------------
    # Typed views
    # ------------------------------------------------------------------

    @property
    def category(self) -> CategoryRef:
        """Category as a value object."""
        return CategoryRef(main=self.category_main, sub=self.category_sub)

    @category.setter
    def category(self, value: CategoryRef) -> None:
        self.category_main = value.main
        self.category_sub = value.sub

    @property
    def discount(self) -> Discount:
        """Discount state as a value object."""
        return Discount(
            is_discounted=self.is_discounted,
            discounted_price=self.discounted_price,
        )

    @discount.setter
    def discount(self, value: Discount) -> None:
        self.is_discounted = value.is_discounted
        self.discounted_price = value.discounted_price

    @property
    def image_list(self) -> list[ProductImage]:
        """Images in display order."""
        return [ProductImage.from_dict(i) for i in self.images or []]

    @image_list.setter
    def image_list(self, value: list[ProductImage]) -> None:
        # Reassign so the JSON column is flagged dirty.
        self.images = [i.to_dict() for i in value]

    @property
    def storage_ids(self) -> list[str]:
        """Storage IDs of all images."""
        return [i.storage_id for i in self.image_list]

    @property
    def color_list(self) -> list[Color]:
        """Colors in display order."""
        return [Color(name=c["name"], hex=c["hex"]) for c in self.colors or []]

    @color_list.setter
    def color_list(self, value: list[Color]) -> None:
        self.colors = [c.to_dict() for c in value]

    @property
    def size_options(self) -> list[SizeOption]:
        """Sizes in display order."""
        return [SizeOption(name=s.name, value=s.value) for s in self.sizes]

    @size_options.setter
    def size_options(self, value: list[SizeOption]) -> None:
        self.sizes = [
            ProductSize(position=i, name=s.name, value=s.value)
            for i, s in enumerate(value)
        ]

    def refresh_search_text(self) -> None:
        """Recompute the derived search field."""
        self.search_text = build_search_text(self.name, self.description, self.category)


class ProductSize(Base):
    """A size offered for a product.

    Attributes:
        id: Row identifier.
        product_id: Parent product ID.
        position: Display order within the product.
        name: Size label (e.g., "Small").
        value: Size value (e.g., "S"); what listing filters match on.
    """

    __tablename__ = "product_sizes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="sizes")

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductSize(product_id={self.product_id}, value={self.value})>"


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _derive_search_text(mapper: Any, connection: Any, target: Product) -> None:
    target.refresh_search_text()
