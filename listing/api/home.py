"""Home page API endpoints.

Provides the storefront listings: search, curated products, new arrivals
and category pages.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from listing.api.deps import ParamsDep, ServiceDep
from listing.api.products import page_to_response, product_to_response
from listing.api.schemas import ErrorResponse, ProductItemsResponse, ProductListResponse

router = APIRouter(prefix="/home", tags=["Home"])


@router.get(
    "/search",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Search products",
)
async def search_products(service: ServiceDep, params: ParamsDep) -> ProductListResponse:
    """Search products by free text.

    Args:
        service: Product service.
        params: `search` text plus sort and paging parameters.

    Returns:
        One page of matching products.
    """
    return page_to_response(await service.search_products(params.search or "", params))


@router.get(
    "/our-products",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List curated products",
)
async def our_products(service: ServiceDep, params: ParamsDep) -> ProductListResponse:
    """List newest products, optionally within one category."""
    return page_to_response(await service.list_curated(params))


@router.get(
    "/new-arrivals",
    response_model=ProductItemsResponse,
    summary="List new arrivals",
)
async def new_arrivals(
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 6,
) -> ProductItemsResponse:
    """List products flagged as new arrivals, newest first."""
    products = await service.list_new_arrivals(limit)
    return ProductItemsResponse(items=[product_to_response(p) for p in products])


@router.get(
    "/category/{category_name}",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List products in a category",
)
async def category_products(
    category_name: str,
    service: ServiceDep,
    params: ParamsDep,
) -> ProductListResponse:
    """List products for a main or sub-category."""
    return page_to_response(await service.list_by_category(category_name, params))
