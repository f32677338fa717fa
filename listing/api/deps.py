"""Shared FastAPI dependencies.

Builds the product service per request and reads the caller identity and
listing parameters from the request.
"""

from typing import Annotated

import structlog
from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from listing.application.media_reconciler import MediaReconciler
from listing.application.product_service import ProductService
from listing.catalog.query import QueryParams, QueryResolver
from listing.catalog.repository import ProductRepository
from listing.catalog.taxonomy import Taxonomy, get_taxonomy
from listing.infrastructure.config import settings
from listing.infrastructure.database import get_session
from listing.infrastructure.object_store import ObjectStoreGateway, get_object_store

logger = structlog.get_logger()


def get_product_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[ObjectStoreGateway, Depends(get_object_store)],
    taxonomy: Annotated[Taxonomy, Depends(get_taxonomy)],
) -> ProductService:
    """Get product service bound to the request's session."""
    return ProductService(
        repository=ProductRepository(session),
        reconciler=MediaReconciler(gateway, folder=settings.media_folder),
        taxonomy=taxonomy,
        resolver=QueryResolver(taxonomy, max_limit=settings.max_page_size),
    )


def get_caller_id(
    x_account_id: Annotated[str | None, Header()] = None,
) -> str:
    """Get the authenticated account ID set by the upstream auth layer.

    Raises:
        HTTPException: 401 if the header is missing or blank.
    """
    if not x_account_id or not x_account_id.strip():
        logger.warning("Missing caller identity")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "UNAUTHORIZED",
                "message": "Missing X-Account-ID header",
            },
        )
    return x_account_id.strip()


def get_query_params(
    category: Annotated[str | None, Query(description="Main or sub-category name")] = None,
    min_price: Annotated[str | None, Query(alias="minPrice")] = None,
    max_price: Annotated[str | None, Query(alias="maxPrice")] = None,
    sizes: Annotated[
        list[str] | None,
        Query(description="Size values, repeated or comma-separated"),
    ] = None,
    search: Annotated[str | None, Query()] = None,
    sort_by: Annotated[str | None, Query(alias="sortBy")] = None,
    sort_order: Annotated[str | None, Query(alias="sortOrder")] = None,
    page: Annotated[str | None, Query()] = None,
    limit: Annotated[str | None, Query()] = None,
) -> QueryParams:
    """Collect raw listing parameters.

    Values are left as strings; the query resolver owns parsing, defaults
    and clamping.
    """
    return QueryParams(
        category=category,
        min_price=min_price,
        max_price=max_price,
        sizes=sizes,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


ServiceDep = Annotated[ProductService, Depends(get_product_service)]
CallerDep = Annotated[str, Depends(get_caller_id)]
ParamsDep = Annotated[QueryParams, Depends(get_query_params)]
