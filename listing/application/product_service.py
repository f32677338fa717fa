"""Product application service.

Orchestrates the product lifecycle:
- Creating products (validate, stage images, insert)
- Updating products (authorize, validate patch, stage, save, release dropped images)
- Deleting products (authorize, release images, delete)
- Paginated listings for browse, category, curated, search, owner and related views

Validation and ownership checks always run before the first upload, so a
rejected request leaves neither a document nor stored objects behind.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import uuid4

import structlog

from listing.application.media_reconciler import MediaReconciler
from listing.catalog.models import Product
from listing.catalog.query import (
    BROWSE,
    CATEGORY_PAGE,
    CURATED,
    RELATED,
    Equals,
    NotEquals,
    PageSpec,
    ProductField,
    QueryParams,
    QueryResolver,
    ResolvedQuery,
)
from listing.catalog.repository import ProductRepository
from listing.catalog.taxonomy import Taxonomy
from listing.domain.commands import ProductDraft, ProductPatch
from listing.domain.exceptions import (
    AuthorizationError,
    MediaReleaseWarning,
    NotFoundError,
    ValidationError,
)
from listing.domain.value_objects import Discount, MediaFile

T = TypeVar("T")

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class Page(Generic[T]):
    """One page of a listing.

    Attributes:
        items: Items on this page.
        total: Total number of matching items.
        page: Current page (1-based).
        limit: Page size used for the query.
    """

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def current_page(self) -> int:
        """Current page number."""
        return self.page

    @property
    def total_products(self) -> int:
        """Total number of matching products."""
        return self.total

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 1


@dataclass
class ProductMutationResult:
    """Result of a committed create, update or delete.

    Attributes:
        product_id: ID of the affected product.
        product: The saved product (None after a delete).
        warning: Storage objects that could not be released, if any.
    """

    product_id: str
    product: Product | None = None
    warning: MediaReleaseWarning | None = None

    @property
    def release_failures(self) -> int:
        """Number of storage objects left behind."""
        return self.warning.failure_count if self.warning else 0


# ============================================================================
# Product Service
# ============================================================================


class ProductService:
    """Application service for the product lifecycle.

    Example usage:
        service = ProductService(
            ProductRepository(session),
            MediaReconciler(get_object_store()),
            get_taxonomy(),
        )
        result = await service.create_product(owner_id, draft, files)
        page = await service.list_products(QueryParams(category="TOPS"))
    """

    NEW_ARRIVALS_LIMIT = 6

    def __init__(
        self,
        repository: ProductRepository,
        reconciler: MediaReconciler,
        taxonomy: Taxonomy,
        resolver: QueryResolver | None = None,
    ) -> None:
        """Initialize service.

        Args:
            repository: Product repository.
            reconciler: Media reconciler for image uploads and deletes.
            taxonomy: Category hierarchy and size labels.
            resolver: Query resolver (built from `taxonomy` if not provided).
        """
        self.repository = repository
        self.reconciler = reconciler
        self.taxonomy = taxonomy
        self.resolver = resolver or QueryResolver(taxonomy)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_product(
        self,
        owner_id: str,
        draft: ProductDraft,
        files: Sequence[MediaFile],
    ) -> ProductMutationResult:
        """Create a product with at least one image.

        Args:
            owner_id: Account creating the product.
            draft: Product fields.
            files: Image files, in display order.

        Returns:
            ProductMutationResult with the inserted product.

        Raises:
            ValidationError: Missing/invalid fields or no images.
            MediaUploadError: An image failed to upload; nothing was stored.
            StoreError: The insert failed; staged images were released.
        """
        if not owner_id or not owner_id.strip():
            raise ValidationError("Owner is required", field="owner")

        missing = draft.missing_fields()
        if missing:
            raise ValidationError(
                "Please provide all required fields",
                details={"missing": missing},
            )
        if not files:
            raise ValidationError(
                "Please provide at least one product image", field="images"
            )

        price = self._valid_price(draft.price, "price")
        values: dict[str, Any] = {
            "name": self._valid_text(draft.name, "name"),
            "description": self._valid_text(draft.description, "description"),
            "price": price,
            "stock": self._valid_stock(draft.stock),
            "category": self.taxonomy.validate_category(draft.category),
            "discount": self._valid_discount(
                draft.is_discounted, draft.discounted_price, price
            ),
            "color_list": list(draft.colors or []),
            "size_options": self.taxonomy.validate_sizes(draft.sizes or []),
            "is_new_arrival": bool(draft.is_new_arrival),
        }

        staged = await self.reconciler.stage_new_images(files)

        product = Product(id=str(uuid4()), owner_id=owner_id)
        self._apply(product, values)
        product.image_list = staged

        try:
            await self.repository.insert(product)
        except Exception:
            leaked = await self.reconciler.discard_staged(staged)
            logger.error(
                "Product create aborted, staged images discarded",
                owner_id=owner_id,
                staged=len(staged),
                leaked=leaked,
            )
            raise

        logger.info(
            "Product created",
            product_id=product.id,
            owner_id=owner_id,
            category=product.category.to_dict(),
            image_count=len(staged),
        )
        return ProductMutationResult(product_id=product.id, product=product)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update_product(
        self,
        product_id: str,
        caller_id: str,
        patch: ProductPatch,
        files: Sequence[MediaFile] = (),
    ) -> ProductMutationResult:
        """Apply a partial update, merging images.

        Args:
            product_id: Product to update.
            caller_id: Account requesting the change.
            patch: Fields to change.
            files: New image files appended after the retained images.

        Returns:
            ProductMutationResult; `warning` lists dropped images that could
            not be released after the save.

        Raises:
            NotFoundError: Unknown product.
            AuthorizationError: Caller is not the owner.
            ValidationError: Invalid patch field or retained set.
            MediaUploadError: A new image failed to upload; nothing changed.
            StoreError: The save failed; new uploads were released.
        """
        product = await self._load_owned(product_id, caller_id)

        values = self._validate_patch(product, patch)
        current_images = product.image_list
        retained = self.reconciler.check_retained(current_images, patch.existing_images)

        staged = await self.reconciler.stage_new_images(files)
        merge = self.reconciler.merge_image_lists(current_images, retained, staged)

        self._apply(product, values)
        if patch.declares_retained_images or staged:
            product.image_list = merge.images
        product.updated_at = datetime.now(timezone.utc)

        try:
            await self.repository.replace(product)
        except Exception:
            leaked = await self.reconciler.discard_staged(staged)
            logger.error(
                "Product update aborted, staged images discarded",
                product_id=product_id,
                staged=len(staged),
                leaked=leaked,
            )
            raise

        warning = await self.reconciler.release_images(merge.dropped_storage_ids)

        logger.info(
            "Product updated",
            product_id=product_id,
            fields=patch.changed_fields(),
            added_images=len(staged),
            dropped_images=len(merge.dropped),
            release_failures=warning.failure_count if warning else 0,
        )
        return ProductMutationResult(product_id=product_id, product=product, warning=warning)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_product(self, product_id: str, caller_id: str) -> ProductMutationResult:
        """Delete a product and release its images.

        Images are released before the row is deleted. A partial release
        does not stop the delete; it is reported on the result.

        Args:
            product_id: Product to delete.
            caller_id: Account requesting the delete.

        Returns:
            ProductMutationResult with `product` None.

        Raises:
            NotFoundError: Unknown product.
            AuthorizationError: Caller is not the owner.
            StoreError: The delete failed.
        """
        product = await self._load_owned(product_id, caller_id)

        warning = await self.reconciler.release_images(product.storage_ids)
        await self.repository.remove(product_id)

        logger.info(
            "Product deleted",
            product_id=product_id,
            owner_id=caller_id,
            release_failures=warning.failure_count if warning else 0,
        )
        return ProductMutationResult(product_id=product_id, warning=warning)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_product(self, product_id: str) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product if found, None otherwise.
        """
        return await self.repository.get_by_id(product_id)

    async def list_products(self, params: QueryParams) -> Page[Product]:
        """General browse listing with every filter.

        Args:
            params: Listing parameters.

        Returns:
            Page of products.
        """
        return await self._run(self.resolver.resolve(params, BROWSE))

    async def list_by_category(self, category_name: str, params: QueryParams) -> Page[Product]:
        """Category page: one category token plus price filter and sort.

        Args:
            category_name: Main or sub-category name.
            params: Price, sort and paging parameters (other filters ignored).

        Returns:
            Page of products.

        Raises:
            ValidationError: Blank category name.
        """
        if not category_name or not category_name.strip():
            raise ValidationError("Category name is required", field="category")
        scoped = QueryParams(
            category=category_name,
            min_price=params.min_price,
            max_price=params.max_price,
            sort_by=params.sort_by,
            sort_order=params.sort_order,
            page=params.page,
            limit=params.limit,
        )
        return await self._run(self.resolver.resolve(scoped, CATEGORY_PAGE))

    async def list_curated(self, params: QueryParams) -> Page[Product]:
        """Home page "our products" listing, newest first.

        Args:
            params: Optional category token and paging (other filters ignored).

        Returns:
            Page of products.
        """
        scoped = QueryParams(category=params.category, page=params.page, limit=params.limit)
        return await self._run(self.resolver.resolve(scoped, CURATED))

    async def list_new_arrivals(self, limit: int | None = None) -> list[Product]:
        """Newest products flagged as new arrivals.

        Args:
            limit: Maximum number of products.

        Returns:
            List of products.
        """
        query = self.resolver.resolve(
            QueryParams(page=1, limit=limit or self.NEW_ARRIVALS_LIMIT),
            BROWSE,
            scope=[Equals(ProductField.IS_NEW_ARRIVAL, True)],
        )
        items, _ = await self.repository.find(query.predicate, query.sort, query.page)
        return items

    async def search_products(self, term: str, params: QueryParams) -> Page[Product]:
        """Free-text search over name, description and category.

        Args:
            term: Search text.
            params: Sort and paging parameters.

        Returns:
            Page of products.

        Raises:
            ValidationError: Blank search text.
        """
        if not term or not term.strip():
            raise ValidationError("Search query is required", field="search")
        scoped = QueryParams(
            search=term,
            sort_by=params.sort_by,
            sort_order=params.sort_order,
            page=params.page,
            limit=params.limit,
        )
        return await self._run(self.resolver.resolve(scoped, BROWSE))

    async def list_owner_products(self, owner_id: str, params: QueryParams) -> Page[Product]:
        """Products listed by one account.

        Args:
            owner_id: Account ID.
            params: Listing parameters.

        Returns:
            Page of products.
        """
        return await self._run(
            self.resolver.resolve(
                params, BROWSE, scope=[Equals(ProductField.OWNER, owner_id)]
            )
        )

    async def list_related(self, product_id: str, params: QueryParams) -> Page[Product]:
        """Other products in the same category as a given product.

        Args:
            product_id: Reference product.
            params: Paging parameters (other filters ignored).

        Returns:
            Page of products, newest first.

        Raises:
            NotFoundError: Unknown reference product.
        """
        product = await self.repository.get_by_id(product_id)
        if product is None:
            raise NotFoundError(product_id)

        scope = [
            Equals(ProductField.CATEGORY_MAIN, product.category_main),
            Equals(ProductField.CATEGORY_SUB, product.category_sub),
            NotEquals(ProductField.ID, product.id),
        ]
        scoped = QueryParams(page=params.page, limit=params.limit)
        return await self._run(self.resolver.resolve(scoped, RELATED, scope=scope))

    async def _run(self, query: ResolvedQuery) -> Page[Product]:
        items, total = await self.repository.find(query.predicate, query.sort, query.page)
        return self._page(items, total, query.page)

    @staticmethod
    def _page(items: list[Product], total: int, spec: PageSpec) -> Page[Product]:
        return Page(items=items, total=total, page=spec.page, limit=spec.limit)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_owned(self, product_id: str, caller_id: str) -> Product:
        """Load a product and check the caller owns it."""
        product = await self.repository.get_by_id(product_id)
        if product is None:
            raise NotFoundError(product_id)
        if not caller_id or product.owner_id != caller_id:
            logger.warning(
                "Product ownership check failed",
                product_id=product_id,
                caller_id=caller_id,
            )
            raise AuthorizationError(product_id, caller_id)
        return product

    def _validate_patch(self, product: Product, patch: ProductPatch) -> dict[str, Any]:
        """Validate every patch field before any of them is applied.

        Returns:
            Attribute name -> validated value for the fields to change.
        """
        values: dict[str, Any] = {}

        if patch.name is not None:
            values["name"] = self._valid_text(patch.name, "name")
        if patch.description is not None:
            values["description"] = self._valid_text(patch.description, "description")
        if patch.price is not None:
            values["price"] = self._valid_price(patch.price, "price")
        if patch.stock is not None:
            values["stock"] = self._valid_stock(patch.stock)
        if patch.category is not None:
            values["category"] = self.taxonomy.validate_category(patch.category)
        if patch.colors is not None:
            values["color_list"] = list(patch.colors)
        if patch.sizes is not None:
            values["size_options"] = self.taxonomy.validate_sizes(patch.sizes)
        if patch.is_new_arrival is not None:
            values["is_new_arrival"] = patch.is_new_arrival

        if (
            patch.is_discounted is not None
            or patch.discounted_price is not None
            or patch.price is not None
        ):
            is_discounted = (
                patch.is_discounted
                if patch.is_discounted is not None
                else product.is_discounted
            )
            discounted_price = (
                patch.discounted_price
                if patch.discounted_price is not None
                else product.discounted_price
            )
            values["discount"] = self._valid_discount(
                is_discounted,
                discounted_price,
                values.get("price", product.price),
            )

        return values

    @staticmethod
    def _apply(product: Product, values: dict[str, Any]) -> None:
        for attribute, value in values.items():
            setattr(product, attribute, value)

    @staticmethod
    def _valid_text(value: str | None, field: str) -> str:
        if value is None or not value.strip():
            raise ValidationError(f"{field} cannot be empty", field=field)
        return value.strip()

    @staticmethod
    def _valid_price(value: Decimal | None, field: str) -> Decimal:
        if value is None:
            raise ValidationError(f"{field} is required", field=field)
        price = Decimal(value)
        if not price.is_finite() or price < 0:
            raise ValidationError(f"{field} must be a non-negative number", field=field)
        return price

    @staticmethod
    def _valid_stock(value: int | None) -> int:
        if value is None or isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("stock must be an integer", field="stock")
        if value < 0:
            raise ValidationError("stock cannot be negative", field="stock")
        return value

    @staticmethod
    def _valid_discount(
        is_discounted: bool,
        discounted_price: Decimal | None,
        price: Decimal,
    ) -> Discount:
        discount = Discount(
            is_discounted=bool(is_discounted),
            discounted_price=Decimal(discounted_price) if discounted_price is not None else None,
        )
        if discount.discounted_price is not None and discount.discounted_price > price:
            raise ValidationError(
                "Discounted price cannot exceed the regular price",
                field="discounted_price",
            )
        return discount
