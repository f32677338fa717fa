"""Product repository for database operations.

Executes resolved listing queries and single-product writes. Every write
commits on its own: each product is self-contained, so single-row atomicity
is all the catalog needs.
"""

from typing import Any

import structlog
from sqlalchemy import ColumnElement, and_, func, or_, select, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from listing.catalog.models import Product, ProductSize
from listing.catalog.query import (
    AllOf,
    AnyIn,
    AnyOf,
    Clause,
    Contains,
    Equals,
    InRange,
    NotEquals,
    PageSpec,
    Predicate,
    ProductField,
    SortDirection,
    SortField,
    SortSpec,
)
from listing.domain.exceptions import StoreError

logger = structlog.get_logger()


class ProductRepository:
    """Repository for Product database operations.

    Example usage:
        async with async_session_factory() as session:
            repo = ProductRepository(session)
            items, total = await repo.find(query.predicate, query.sort, query.page)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(
        self,
        predicate: Predicate,
        sort: SortSpec,
        page: PageSpec,
    ) -> tuple[list[Product], int]:
        """Find one page of products matching a predicate.

        The total is an independent count over the same predicate, so it is
        exact regardless of how many items the page holds.

        Args:
            predicate: Resolved filter.
            sort: Sort key.
            page: Page number and size.

        Returns:
            Tuple of (products on this page, total matching products).

        Raises:
            StoreError: On database failure.
        """
        condition = self._compile(predicate)

        sort_column = self._get_sort_column(sort.field)
        if sort.direction is SortDirection.DESC:
            order = (sort_column.desc(), Product.id.desc())
        else:
            order = (sort_column.asc(), Product.id.asc())

        query = (
            select(Product)
            .where(condition)
            .order_by(*order)
            .offset(page.skip)
            .limit(page.limit)
        )
        count_query = select(func.count(Product.id)).where(condition)

        try:
            result = await self.session.execute(query)
            items = list(result.scalars().all())
            total = (await self.session.execute(count_query)).scalar_one()
        except SQLAlchemyError as e:
            logger.exception("Product query failed", error=str(e))
            raise StoreError("find") from e

        return items, total

    async def get_by_id(self, product_id: str) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product if found, None otherwise.

        Raises:
            StoreError: On database failure.
        """
        try:
            return await self.session.get(Product, product_id)
        except SQLAlchemyError as e:
            logger.exception("Product lookup failed", product_id=product_id, error=str(e))
            raise StoreError("get_by_id", product_id) from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, product: Product) -> Product:
        """Insert and commit a new product.

        Args:
            product: Product to insert.

        Returns:
            Inserted product.

        Raises:
            StoreError: On database failure; nothing is persisted.
        """
        self.session.add(product)
        await self._commit("insert", product.id)
        return product

    async def replace(self, product: Product) -> Product:
        """Commit the pending changes of a loaded product.

        Args:
            product: Product with its patch already applied.

        Returns:
            Saved product.

        Raises:
            StoreError: On database failure; the stored row is unchanged.
        """
        await self._commit("replace", product.id)
        return product

    async def remove(self, product_id: str) -> None:
        """Delete and commit a product and its sizes.

        Args:
            product_id: Product ID.

        Raises:
            StoreError: On database failure.
        """
        product = await self.get_by_id(product_id)
        if product is None:
            return
        await self.session.delete(product)
        await self._commit("remove", product_id)

    async def _commit(self, operation: str, product_id: str | None) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(
                "Product write failed",
                operation=operation,
                product_id=product_id,
                error=str(e),
            )
            raise StoreError(operation, product_id) from e

    # ------------------------------------------------------------------
    # Predicate compilation
    # ------------------------------------------------------------------

    def _compile(self, clause: Clause) -> ColumnElement[bool]:
        """Translate a predicate clause into a SQLAlchemy condition.

        Args:
            clause: Predicate clause.

        Returns:
            SQLAlchemy boolean expression.
        """
        if isinstance(clause, AllOf):
            return and_(true(), *(self._compile(c) for c in clause.clauses))

        if isinstance(clause, AnyOf):
            return or_(*(self._compile(c) for c in clause.clauses))

        if isinstance(clause, AnyIn):
            if clause.field is not ProductField.SIZE_VALUE:
                raise ValueError(f"Unsupported set field: {clause.field}")
            return Product.sizes.any(ProductSize.value.in_(clause.values))

        column = self._get_column(clause.field)

        if isinstance(clause, Equals):
            return column == clause.value

        if isinstance(clause, NotEquals):
            return column != clause.value

        if isinstance(clause, Contains):
            return column.icontains(clause.text, autoescape=True)

        if isinstance(clause, InRange):
            conditions = []
            if clause.gte is not None:
                conditions.append(column >= clause.gte)
            if clause.lte is not None:
                conditions.append(column <= clause.lte)
            return and_(true(), *conditions)

        raise ValueError(f"Unsupported clause: {clause!r}")

    def _get_column(self, field: ProductField) -> Any:
        """Get SQLAlchemy column for a predicate field.

        Args:
            field: Predicate field.

        Returns:
            SQLAlchemy column.
        """
        columns = {
            ProductField.ID: Product.id,
            ProductField.OWNER: Product.owner_id,
            ProductField.NAME: Product.name,
            ProductField.DESCRIPTION: Product.description,
            ProductField.CATEGORY_MAIN: Product.category_main,
            ProductField.CATEGORY_SUB: Product.category_sub,
            ProductField.SEARCH_TEXT: Product.search_text,
            ProductField.PRICE: Product.price,
            ProductField.IS_NEW_ARRIVAL: Product.is_new_arrival,
        }
        if field not in columns:
            raise ValueError(f"Unsupported scalar field: {field}")
        return columns[field]

    def _get_sort_column(self, sort_by: SortField) -> Any:
        """Get SQLAlchemy column for sorting.

        Args:
            sort_by: Sort field.

        Returns:
            SQLAlchemy column.
        """
        columns = {
            SortField.CREATED_AT: Product.created_at,
            SortField.UPDATED_AT: Product.updated_at,
            SortField.PRICE: Product.price,
            SortField.NAME: Product.name,
            SortField.STOCK: Product.stock,
        }
        return columns.get(sort_by, Product.created_at)
