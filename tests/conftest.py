"""Shared fixtures for listing tests.

Points the application at in-memory SQLite before anything from `listing`
is imported, and provides an in-memory object store.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import Sequence  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import AsyncGenerator  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from listing.catalog.models import Product  # noqa: E402
from listing.catalog.taxonomy import Taxonomy  # noqa: E402
from listing.domain.value_objects import (  # noqa: E402
    CategoryRef,
    MediaFile,
    ProductImage,
)
from listing.infrastructure.database import Base  # noqa: E402
from listing.infrastructure.object_store import (  # noqa: E402
    DeleteResult,
    ObjectStoreUploadError,
)


# ============================================================================
# Object Store Fake
# ============================================================================


class InMemoryObjectStore:
    """Object store gateway backed by a dict.

    Attributes:
        objects: storage_id -> stored bytes.
        fail_upload_at: Zero-based index of the upload (counted across calls)
            that fails, or None.
        undeletable: Storage IDs that delete_many reports as failed.
        upload_calls: Number of upload_many calls.
        deleted: Every storage ID passed to delete_many, in order.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_upload_at: int | None = None
        self.undeletable: set[str] = set()
        self.upload_calls = 0
        self.deleted: list[str] = []
        self._uploads = 0

    def seed(self, *storage_ids: str) -> list[ProductImage]:
        """Store placeholder objects and return them as images."""
        for storage_id in storage_ids:
            self.objects[storage_id] = b"seed"
        return [ProductImage(storage_id=s, url=self.url_for(s)) for s in storage_ids]

    @staticmethod
    def url_for(storage_id: str) -> str:
        return f"https://media.test/{storage_id}"

    async def upload_many(
        self, files: Sequence[MediaFile], folder: str
    ) -> list[ProductImage]:
        self.upload_calls += 1
        uploaded: list[ProductImage] = []
        for media in files:
            if self.fail_upload_at is not None and self._uploads == self.fail_upload_at:
                self._uploads += 1
                raise ObjectStoreUploadError(f"Failed to upload {media.filename}", uploaded)
            self._uploads += 1
            storage_id = f"{folder}/obj-{self._uploads}"
            self.objects[storage_id] = media.content
            uploaded.append(ProductImage(storage_id=storage_id, url=self.url_for(storage_id)))
        return uploaded

    async def delete_many(self, storage_ids: Sequence[str]) -> DeleteResult:
        result = DeleteResult()
        for storage_id in storage_ids:
            self.deleted.append(storage_id)
            if storage_id in self.undeletable:
                result.failed.append(storage_id)
                continue
            self.objects.pop(storage_id, None)
            result.succeeded.append(storage_id)
        return result


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def taxonomy() -> Taxonomy:
    """Default product taxonomy."""
    return Taxonomy.default()


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    """Empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture
def image_files() -> list[MediaFile]:
    """Three small image files."""
    return [
        MediaFile(filename=f"img{i}.jpg", content=f"jpeg-{i}".encode(), content_type="image/jpeg")
        for i in range(1, 4)
    ]


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with the catalog schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Database session on the in-memory database."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


def make_product(
    name: str = "Tee",
    *,
    owner_id: str = "acct-1",
    description: str = "Cotton tee",
    price: str = "10.00",
    category: tuple[str, str] = ("TOPS", "TSHIRT"),
    sizes: Sequence[str] = (),
    images: Sequence[ProductImage] = (),
    stock: int = 5,
    is_new_arrival: bool = False,
) -> Product:
    """Build an unsaved product."""
    product = Product(
        id=str(uuid4()),
        owner_id=owner_id,
        name=name,
        description=description,
        price=Decimal(price),
        stock=stock,
        is_new_arrival=is_new_arrival,
        is_discounted=False,
        discounted_price=None,
    )
    product.category = CategoryRef(*category)
    size_labels = {s.value: s for s in Taxonomy.default().sizes}
    product.size_options = [size_labels[v] for v in sizes] if sizes else []
    product.image_list = list(images)
    product.color_list = []
    return product


@pytest.fixture
def product_factory():
    """Factory for unsaved products."""
    return make_product

