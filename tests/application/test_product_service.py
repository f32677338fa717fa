"""Tests for the product service against in-memory SQLite and object store."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from listing.application.media_reconciler import MediaReconciler
from listing.application.product_service import Page, ProductService
from listing.catalog.models import build_search_text
from listing.catalog.query import QueryParams
from listing.catalog.repository import ProductRepository
from listing.domain import (
    AuthorizationError,
    CategoryRef,
    Color,
    MediaFile,
    MediaUploadError,
    NotFoundError,
    ProductDraft,
    ProductImage,
    ProductPatch,
    SizeOption,
    StoreError,
    ValidationError,
)

OWNER = "acct-1"
OTHER = "acct-2"


@pytest.fixture
def service(session, object_store, taxonomy) -> ProductService:
    """Product service over the test database and object store."""
    return ProductService(
        repository=ProductRepository(session),
        reconciler=MediaReconciler(object_store),
        taxonomy=taxonomy,
    )


@pytest.fixture
def tee_draft() -> ProductDraft:
    """Minimal valid draft."""
    return ProductDraft(
        name="Tee",
        description="Cotton tee",
        price=Decimal("20"),
        category=CategoryRef(main="TOPS", sub="TSHIRT"),
        stock=5,
    )


async def _total(service: ProductService) -> int:
    return (await service.list_products(QueryParams())).total_products


async def _seed(service: ProductService, products) -> None:
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i, product in enumerate(products):
        product.created_at = base + timedelta(minutes=i)
        await service.repository.insert(product)


# ============================================================================
# Create
# ============================================================================


class TestCreateProduct:
    """Tests for product creation."""

    @pytest.mark.asyncio
    async def test_create_tee(self, service, object_store, tee_draft, image_files) -> None:
        """A valid draft with one file is committed with one image."""
        result = await service.create_product(OWNER, tee_draft, image_files[:1])

        product = result.product
        assert result.warning is None
        assert len(product.image_list) == 1
        assert product.is_new_arrival is False
        assert product.owner_id == OWNER
        assert product.image_list[0].storage_id in object_store.objects

        loaded = await service.get_product(result.product_id)
        assert loaded.category == CategoryRef("TOPS", "TSHIRT")
        assert loaded.search_text == build_search_text("Tee", "Cotton tee", loaded.category)

    @pytest.mark.asyncio
    async def test_create_with_optional_fields(self, service, tee_draft, image_files) -> None:
        """Colors, sizes and discount are stored in order."""
        tee_draft.colors = [Color("Red", "#ff0000"), Color("Blue", "#0000ff")]
        tee_draft.sizes = [SizeOption("Medium", "M"), SizeOption("Small", "S")]
        tee_draft.is_discounted = True
        tee_draft.discounted_price = Decimal("15")
        tee_draft.is_new_arrival = True

        result = await service.create_product(OWNER, tee_draft, image_files)

        product = result.product
        assert [c.name for c in product.color_list] == ["Red", "Blue"]
        assert [s.value for s in product.size_options] == ["M", "S"]
        assert product.discount.discounted_price == Decimal("15")
        assert product.is_new_arrival is True
        assert len(product.image_list) == 3

    @pytest.mark.asyncio
    async def test_missing_stock_never_inserts_or_uploads(
        self, service, object_store, tee_draft, image_files
    ) -> None:
        """A failed create leaves nothing behind, however often it is retried."""
        tee_draft.stock = None

        for _ in range(2):
            with pytest.raises(ValidationError) as exc_info:
                await service.create_product(OWNER, tee_draft, image_files)
            assert exc_info.value.details["missing"] == ["stock"]

        assert object_store.upload_calls == 0
        assert object_store.objects == {}
        assert await _total(service) == 0

    @pytest.mark.asyncio
    async def test_requires_an_image(self, service, tee_draft) -> None:
        """At least one file is required."""
        with pytest.raises(ValidationError) as exc_info:
            await service.create_product(OWNER, tee_draft, [])
        assert exc_info.value.field == "images"

    @pytest.mark.asyncio
    async def test_category_mismatch_rejected_before_upload(
        self, service, object_store, tee_draft, image_files
    ) -> None:
        """A sub-category from another main category is rejected before staging."""
        tee_draft.category = CategoryRef("TOPS", "JEANS")

        with pytest.raises(ValidationError):
            await service.create_product(OWNER, tee_draft, image_files)

        assert object_store.upload_calls == 0
        assert await _total(service) == 0

    @pytest.mark.asyncio
    async def test_discount_above_price_rejected(self, service, object_store, tee_draft, image_files) -> None:
        """Discounted price cannot exceed price."""
        tee_draft.is_discounted = True
        tee_draft.discounted_price = Decimal("25")

        with pytest.raises(ValidationError) as exc_info:
            await service.create_product(OWNER, tee_draft, image_files)

        assert exc_info.value.field == "discounted_price"
        assert object_store.upload_calls == 0

    @pytest.mark.asyncio
    async def test_nan_discount_rejected(self, service, object_store, tee_draft, image_files) -> None:
        """A NaN discounted price is a validation error, not a crash."""
        tee_draft.is_discounted = True
        tee_draft.discounted_price = Decimal("NaN")

        with pytest.raises(ValidationError) as exc_info:
            await service.create_product(OWNER, tee_draft, image_files)

        assert exc_info.value.field == "discounted_price"
        assert object_store.upload_calls == 0

    @pytest.mark.asyncio
    async def test_negative_values_rejected(self, service, tee_draft, image_files) -> None:
        """Price and stock cannot be negative."""
        tee_draft.price = Decimal("-1")
        with pytest.raises(ValidationError):
            await service.create_product(OWNER, tee_draft, image_files)

        tee_draft.price = Decimal("20")
        tee_draft.stock = -1
        with pytest.raises(ValidationError):
            await service.create_product(OWNER, tee_draft, image_files)

    @pytest.mark.asyncio
    async def test_invalid_size_rejected(self, service, object_store, tee_draft, image_files) -> None:
        """Sizes outside the canonical list are rejected."""
        tee_draft.sizes = [SizeOption("Huge", "6XL")]
        with pytest.raises(ValidationError):
            await service.create_product(OWNER, tee_draft, image_files)
        assert object_store.upload_calls == 0

    @pytest.mark.asyncio
    async def test_upload_failure_stores_nothing(self, service, object_store, tee_draft, image_files) -> None:
        """A failed upload batch is released and nothing is inserted."""
        object_store.fail_upload_at = 1

        with pytest.raises(MediaUploadError):
            await service.create_product(OWNER, tee_draft, image_files)

        assert object_store.objects == {}
        assert await _total(service) == 0

    @pytest.mark.asyncio
    async def test_insert_failure_releases_staged(self, service, object_store, tee_draft, image_files) -> None:
        """If the insert fails, staged uploads are released."""
        service.repository.insert = AsyncMock(side_effect=StoreError("insert"))

        with pytest.raises(StoreError):
            await service.create_product(OWNER, tee_draft, image_files)

        assert object_store.objects == {}
        assert len(object_store.deleted) == 3


# ============================================================================
# Update
# ============================================================================


class TestUpdateProduct:
    """Tests for partial updates."""

    @pytest.mark.asyncio
    async def test_empty_retained_set_drops_all_images(
        self, service, object_store, tee_draft, image_files
    ) -> None:
        """An empty retained set clears images and releases them after save."""
        created = await service.create_product(OWNER, tee_draft, image_files)
        old_ids = created.product.storage_ids
        assert len(old_ids) == 3

        result = await service.update_product(
            created.product_id, OWNER, ProductPatch(existing_images=[])
        )

        assert result.product.image_list == []
        assert result.warning is None
        assert object_store.deleted == old_ids
        assert object_store.objects == {}

        loaded = await service.get_product(created.product_id)
        assert loaded.images == []

    @pytest.mark.asyncio
    async def test_undeclared_retained_set_appends(self, service, tee_draft, image_files) -> None:
        """Omitting the retained set keeps current images and appends new ones."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])
        first = created.product.storage_ids

        result = await service.update_product(
            created.product_id, OWNER, ProductPatch(name="Tee v2"), image_files[1:]
        )

        assert result.product.storage_ids[:1] == first
        assert len(result.product.storage_ids) == 3
        assert result.product.name == "Tee v2"
        assert result.product.search_text.startswith("tee v2 ")

    @pytest.mark.asyncio
    async def test_partial_retained_set(self, service, object_store, tee_draft, image_files) -> None:
        """Retained images come first, dropped ones are released."""
        created = await service.create_product(OWNER, tee_draft, image_files)
        a, b, c = created.product.image_list
        new_file = MediaFile(filename="new.jpg", content=b"new")

        result = await service.update_product(
            created.product_id,
            OWNER,
            ProductPatch(existing_images=[ProductImage(c.storage_id, "")]),
            [new_file],
        )

        assert result.product.image_list[0] == c
        assert len(result.product.image_list) == 2
        assert object_store.deleted == [a.storage_id, b.storage_id]

    @pytest.mark.asyncio
    async def test_release_failure_returns_warning(self, service, object_store, tee_draft, image_files) -> None:
        """The update is committed even if dropped images cannot be deleted."""
        created = await service.create_product(OWNER, tee_draft, image_files)
        stuck = created.product.storage_ids[0]
        object_store.undeletable = {stuck}

        result = await service.update_product(
            created.product_id, OWNER, ProductPatch(existing_images=[])
        )

        assert result.release_failures == 1
        assert result.warning.failed_storage_ids == [stuck]
        assert (await service.get_product(created.product_id)).images == []

    @pytest.mark.asyncio
    async def test_non_owner_rejected(self, service, object_store, tee_draft, image_files) -> None:
        """Only the owner may update; nothing is uploaded for others."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])
        calls = object_store.upload_calls

        with pytest.raises(AuthorizationError):
            await service.update_product(
                created.product_id, OTHER, ProductPatch(name="Mine"), image_files[1:]
            )

        assert object_store.upload_calls == calls
        assert (await service.get_product(created.product_id)).name == "Tee"

    @pytest.mark.asyncio
    async def test_unknown_product(self, service) -> None:
        """Updating a missing product raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await service.update_product("missing", OWNER, ProductPatch(name="x"))

    @pytest.mark.asyncio
    async def test_invalid_patch_changes_nothing(self, service, object_store, tee_draft, image_files) -> None:
        """One invalid field rejects the whole patch before any upload."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])
        calls = object_store.upload_calls

        with pytest.raises(ValidationError):
            await service.update_product(
                created.product_id,
                OWNER,
                ProductPatch(name="Renamed", category=CategoryRef("TOPS", "JEANS")),
                image_files[1:],
            )

        assert object_store.upload_calls == calls
        assert created.product.name == "Tee"

    @pytest.mark.asyncio
    async def test_foreign_retained_image_rejected(self, service, object_store, tee_draft, image_files) -> None:
        """The retained set must reference the product's own images."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])

        with pytest.raises(ValidationError) as exc_info:
            await service.update_product(
                created.product_id,
                OWNER,
                ProductPatch(existing_images=[ProductImage("elsewhere/1", "")]),
            )

        assert exc_info.value.field == "existing_images"
        assert object_store.deleted == []

    @pytest.mark.asyncio
    async def test_discount_patch(self, service, tee_draft, image_files) -> None:
        """Discount is checked against the effective price."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])
        product_id = created.product_id

        result = await service.update_product(
            product_id,
            OWNER,
            ProductPatch(is_discounted=True, discounted_price=Decimal("12")),
        )
        assert result.product.discounted_price == Decimal("12")

        with pytest.raises(ValidationError):
            await service.update_product(product_id, OWNER, ProductPatch(price=Decimal("10")))

        result = await service.update_product(product_id, OWNER, ProductPatch(is_discounted=False))
        assert result.product.is_discounted is False
        assert result.product.discounted_price is None

    @pytest.mark.asyncio
    async def test_save_failure_discards_new_uploads(
        self, service, object_store, tee_draft, image_files
    ) -> None:
        """A failed save releases new uploads and keeps the old images."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])
        old_ids = created.product.storage_ids
        service.repository.replace = AsyncMock(side_effect=StoreError("replace"))

        with pytest.raises(StoreError):
            await service.update_product(
                created.product_id, OWNER, ProductPatch(existing_images=[]), image_files[1:]
            )

        assert old_ids[0] in object_store.objects
        assert old_ids[0] not in object_store.deleted
        assert len(object_store.deleted) == 2


# ============================================================================
# Delete
# ============================================================================


class TestDeleteProduct:
    """Tests for product deletion."""

    @pytest.mark.asyncio
    async def test_delete(self, service, object_store, tee_draft, image_files) -> None:
        """Owner delete removes the product and its images."""
        created = await service.create_product(OWNER, tee_draft, image_files)

        result = await service.delete_product(created.product_id, OWNER)

        assert result.product is None
        assert result.warning is None
        assert object_store.objects == {}
        assert await service.get_product(created.product_id) is None

    @pytest.mark.asyncio
    async def test_non_owner_touches_nothing(self, service, object_store, tee_draft, image_files) -> None:
        """A non-owner delete leaves the product and its images alone."""
        created = await service.create_product(OWNER, tee_draft, image_files)

        with pytest.raises(AuthorizationError):
            await service.delete_product(created.product_id, OTHER)

        assert object_store.deleted == []
        assert len(object_store.objects) == 3
        assert await service.get_product(created.product_id) is not None

    @pytest.mark.asyncio
    async def test_release_failure_still_deletes(self, service, object_store, tee_draft, image_files) -> None:
        """Leftover images are reported but do not block the delete."""
        created = await service.create_product(OWNER, tee_draft, image_files[:1])
        object_store.undeletable = set(created.product.storage_ids)

        result = await service.delete_product(created.product_id, OWNER)

        assert result.release_failures == 1
        assert await service.get_product(created.product_id) is None

    @pytest.mark.asyncio
    async def test_unknown_product(self, service) -> None:
        """Deleting a missing product raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await service.delete_product("missing", OWNER)


# ============================================================================
# Reads
# ============================================================================


class TestPage:
    """Tests for pagination math."""

    @pytest.mark.parametrize(
        "total,page,limit,pages,has_next,has_prev",
        [
            (0, 1, 12, 0, False, False),
            (12, 1, 12, 1, False, False),
            (25, 1, 12, 3, True, False),
            (25, 3, 12, 3, False, True),
            (25, 2, 12, 3, True, True),
        ],
    )
    def test_page_math(self, total, page, limit, pages, has_next, has_prev) -> None:
        """total_pages is ceil(total / limit); flags follow page position."""
        result = Page(items=[], total=total, page=page, limit=limit)
        assert result.total_pages == pages
        assert result.has_next is has_next
        assert result.has_prev is has_prev


class TestListings:
    """Tests for listing operations."""

    @pytest.mark.asyncio
    async def test_list_products_paging(self, service, product_factory) -> None:
        """The last page holds the remainder."""
        await _seed(service, [product_factory(f"P{i:02d}") for i in range(25)])

        page = await service.list_products(QueryParams(page="3", limit="12"))

        assert page.total_products == 25
        assert page.total_pages == 3
        assert page.current_page == 3
        assert len(page.items) == 1
        assert page.has_next is False
        assert page.has_prev is True

    @pytest.mark.asyncio
    async def test_price_bounds_inclusive(self, service, product_factory) -> None:
        """A product priced exactly on a bound is included."""
        await _seed(service, [product_factory("Exact", price="19.99")])

        at_min = await service.list_products(QueryParams(min_price="19.99"))
        at_max = await service.list_products(QueryParams(max_price="19.99"))

        assert at_min.total_products == 1
        assert at_max.total_products == 1

    @pytest.mark.asyncio
    async def test_list_by_category(self, service, product_factory) -> None:
        """Category page uses exact matching for unknown tokens."""
        await _seed(service, [
            product_factory("Polo", category=("TOPS", "POLO_SHIRT")),
            product_factory("Jeans", category=("BOTTOMS", "JEANS")),
        ])

        assert (await service.list_by_category("JEANS", QueryParams())).total_products == 1
        assert (await service.list_by_category("shirt", QueryParams())).total_products == 0
        assert (await service.list_by_category("TOPS", QueryParams())).items[0].name == "Polo"

    @pytest.mark.asyncio
    async def test_list_by_category_requires_name(self, service) -> None:
        """Blank category name is rejected."""
        with pytest.raises(ValidationError):
            await service.list_by_category(" ", QueryParams())

    @pytest.mark.asyncio
    async def test_list_curated_default_limit(self, service, product_factory) -> None:
        """Curated listing shows eight products, newest first."""
        await _seed(service, [product_factory(f"P{i}") for i in range(10)])

        page = await service.list_curated(QueryParams())

        assert len(page.items) == 8
        assert page.items[0].name == "P9"
        assert page.total_pages == 2

    @pytest.mark.asyncio
    async def test_list_new_arrivals(self, service, product_factory) -> None:
        """Only flagged products, newest first."""
        await _seed(service, [
            product_factory("Old", is_new_arrival=True),
            product_factory("Plain"),
            product_factory("New", is_new_arrival=True),
        ])

        items = await service.list_new_arrivals()

        assert [p.name for p in items] == ["New", "Old"]

    @pytest.mark.asyncio
    async def test_search_products(self, service, product_factory) -> None:
        """Search matches text and requires a term."""
        await _seed(service, [
            product_factory("Tee", description="Organic cotton"),
            product_factory("Jeans", description="Denim", category=("BOTTOMS", "JEANS")),
        ])

        page = await service.search_products("cotton", QueryParams())
        assert [p.name for p in page.items] == ["Tee"]

        with pytest.raises(ValidationError):
            await service.search_products("  ", QueryParams())

    @pytest.mark.asyncio
    async def test_list_owner_products(self, service, product_factory) -> None:
        """Owner listing only shows the caller's products."""
        await _seed(service, [
            product_factory("Mine", owner_id=OWNER),
            product_factory("Theirs", owner_id=OTHER),
        ])

        page = await service.list_owner_products(OWNER, QueryParams())

        assert [p.name for p in page.items] == ["Mine"]

    @pytest.mark.asyncio
    async def test_list_related(self, service, product_factory) -> None:
        """Related products share main and sub category, excluding the product."""
        tee = product_factory("Tee")
        await _seed(service, [
            tee,
            product_factory("Other Tee"),
            product_factory("Polo", category=("TOPS", "POLO_SHIRT")),
        ])

        page = await service.list_related(tee.id, QueryParams())

        assert [p.name for p in page.items] == ["Other Tee"]

    @pytest.mark.asyncio
    async def test_list_related_unknown(self, service) -> None:
        """Unknown reference product raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await service.list_related("missing", QueryParams())

    @pytest.mark.asyncio
    async def test_get_product_missing(self, service) -> None:
        """Missing product returns None."""
        assert await service.get_product("missing") is None
