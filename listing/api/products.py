"""Product API endpoints.

Provides endpoints for creating, updating, deleting and listing products.
Create and update take multipart forms; `category`, `colors`, `sizes` and
`existing_images` arrive as JSON strings and are parsed here.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from fastapi import APIRouter, File, Form, UploadFile, status

from listing.api.deps import CallerDep, ParamsDep, ServiceDep
from listing.api.schemas import (
    CategorySchema,
    ColorSchema,
    DiscountSchema,
    ErrorResponse,
    ImageSchema,
    ProductDeleteResponse,
    ProductListResponse,
    ProductMutationResponse,
    ProductResponse,
    ReleaseWarningSchema,
    SizeSchema,
)
from listing.application.product_service import Page
from listing.catalog.models import Product
from listing.domain.commands import ProductDraft, ProductPatch
from listing.domain.exceptions import MediaReleaseWarning, NotFoundError, ValidationError
from listing.domain.value_objects import CategoryRef, Color, MediaFile, ProductImage, SizeOption

router = APIRouter(prefix="/products", tags=["Products"])

_MUTATION_ERRORS: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ============================================================================
# Converters
# ============================================================================


def product_to_response(product: Product) -> ProductResponse:
    """Convert Product model to response schema."""
    return ProductResponse(
        id=product.id,
        owner_id=product.owner_id,
        name=product.name,
        description=product.description,
        price=product.price,
        discount=DiscountSchema(
            is_discounted=product.is_discounted,
            discounted_price=product.discounted_price,
        ),
        category=CategorySchema(main=product.category_main, sub=product.category_sub),
        sizes=[SizeSchema(name=s.name, value=s.value) for s in product.size_options],
        colors=[ColorSchema(name=c.name, hex=c.hex) for c in product.color_list],
        images=[ImageSchema(storage_id=i.storage_id, url=i.url) for i in product.image_list],
        stock=product.stock,
        is_new_arrival=product.is_new_arrival,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def page_to_response(page: Page[Product]) -> ProductListResponse:
    """Convert a service page to response schema."""
    return ProductListResponse(
        items=[product_to_response(p) for p in page.items],
        current_page=page.current_page,
        total_pages=page.total_pages,
        total_products=page.total_products,
        has_next=page.has_next,
        has_prev=page.has_prev,
    )


def warning_to_response(warning: MediaReleaseWarning | None) -> ReleaseWarningSchema | None:
    """Convert a release warning to response schema."""
    if warning is None:
        return None
    return ReleaseWarningSchema(
        message=warning.message,
        failed_storage_ids=warning.failed_storage_ids,
    )


# ============================================================================
# Form Parsing
# ============================================================================


def _parse_json(raw: str, field: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid JSON format for {field}", field=field) from e


def _parse_category(raw: str | None) -> CategoryRef | None:
    if raw is None or not raw.strip():
        return None
    data = _parse_json(raw, "category")
    if not isinstance(data, dict):
        raise ValidationError("category must be an object with main and sub", field="category")
    return CategoryRef(main=str(data.get("main") or ""), sub=str(data.get("sub") or ""))


def _parse_objects(raw: str | None, field: str, keys: tuple[str, ...]) -> list[dict[str, str]] | None:
    if raw is None:
        return None
    data = _parse_json(raw, field) if raw.strip() else []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValidationError(f"{field} must be a list of objects", field=field)
    for item in data:
        if any(not isinstance(item.get(key), str) for key in keys):
            raise ValidationError(
                f"Each {field} entry needs {', '.join(keys)}", field=field
            )
    return data


def _parse_colors(raw: str | None) -> list[Color] | None:
    data = _parse_objects(raw, "colors", ("name", "hex"))
    return None if data is None else [Color(name=c["name"], hex=c["hex"]) for c in data]


def _parse_sizes(raw: str | None) -> list[SizeOption] | None:
    data = _parse_objects(raw, "sizes", ("name", "value"))
    return None if data is None else [SizeOption(name=s["name"], value=s["value"]) for s in data]


def _parse_images(raw: str | None) -> list[ProductImage] | None:
    data = _parse_objects(raw, "existing_images", ("storage_id",))
    if data is None:
        return None
    return [ProductImage(storage_id=i["storage_id"], url=str(i.get("url") or "")) for i in data]


def _parse_decimal(raw: str | None, field: str) -> Decimal | None:
    if raw is None or not raw.strip():
        return None
    try:
        return Decimal(raw.strip())
    except InvalidOperation as e:
        raise ValidationError(f"{field} must be a number", field=field) from e


def _parse_int(raw: str | None, field: str) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValidationError(f"{field} must be an integer", field=field) from e


def _parse_bool(raw: str | None) -> bool | None:
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in ("true", "1", "yes", "on")


async def _read_files(files: list[UploadFile] | None) -> list[MediaFile]:
    media = []
    for upload in files or []:
        media.append(
            MediaFile(
                filename=upload.filename or "upload",
                content=await upload.read(),
                content_type=upload.content_type or "application/octet-stream",
            )
        )
    return media


# ============================================================================
# Listing Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Browse products",
    description="List products with category, price, size and text filters.",
)
async def list_products(service: ServiceDep, params: ParamsDep) -> ProductListResponse:
    """Browse products.

    Args:
        service: Product service.
        params: Listing parameters.

    Returns:
        One page of products.
    """
    return page_to_response(await service.list_products(params))


@router.get(
    "/mine",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="List my products",
)
async def list_my_products(
    service: ServiceDep,
    caller_id: CallerDep,
    params: ParamsDep,
) -> ProductListResponse:
    """List products owned by the caller."""
    return page_to_response(await service.list_owner_products(caller_id, params))


@router.get(
    "/category/{category_name}",
    response_model=ProductListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List products in a category",
)
async def list_by_category(
    category_name: str,
    service: ServiceDep,
    params: ParamsDep,
) -> ProductListResponse:
    """List products for a main or sub-category."""
    return page_to_response(await service.list_by_category(category_name, params))


@router.get(
    "/related/{product_id}",
    response_model=ProductListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List related products",
)
async def list_related(
    product_id: str,
    service: ServiceDep,
    params: ParamsDep,
) -> ProductListResponse:
    """List other products in the same category as a product."""
    return page_to_response(await service.list_related(product_id, params))


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product details",
)
async def get_product(product_id: str, service: ServiceDep) -> ProductResponse:
    """Get a product by ID.

    Raises:
        NotFoundError: If the product does not exist.
    """
    product = await service.get_product(product_id)
    if product is None:
        raise NotFoundError(product_id)
    return product_to_response(product)


# ============================================================================
# Mutation Endpoints
# ============================================================================


@router.post(
    "",
    response_model=ProductMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_MUTATION_ERRORS,
    summary="Create a product",
    description="Create a product from a multipart form with at least one image.",
)
async def create_product(
    service: ServiceDep,
    caller_id: CallerDep,
    name: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    price: Annotated[str | None, Form()] = None,
    category: Annotated[str | None, Form(description="JSON: {main, sub}")] = None,
    stock: Annotated[str | None, Form()] = None,
    is_discounted: Annotated[str | None, Form()] = None,
    discounted_price: Annotated[str | None, Form()] = None,
    colors: Annotated[str | None, Form(description="JSON: [{name, hex}]")] = None,
    sizes: Annotated[str | None, Form(description="JSON: [{name, value}]")] = None,
    is_new_arrival: Annotated[str | None, Form()] = None,
    images: Annotated[list[UploadFile] | None, File()] = None,
) -> ProductMutationResponse:
    """Create a product.

    Missing required fields are reported together by the service, so form
    fields are all optional here.

    Args:
        service: Product service.
        caller_id: Authenticated account.

    Returns:
        The created product.
    """
    draft = ProductDraft(
        name=name,
        description=description,
        price=_parse_decimal(price, "price"),
        category=_parse_category(category),
        stock=_parse_int(stock, "stock"),
        is_discounted=bool(_parse_bool(is_discounted)),
        discounted_price=_parse_decimal(discounted_price, "discounted_price"),
        colors=_parse_colors(colors),
        sizes=_parse_sizes(sizes),
        is_new_arrival=bool(_parse_bool(is_new_arrival)),
    )
    files = await _read_files(images)

    result = await service.create_product(caller_id, draft, files)

    return ProductMutationResponse(
        product=product_to_response(result.product),
        warning=warning_to_response(result.warning),
    )


@router.put(
    "/{product_id}",
    response_model=ProductMutationResponse,
    responses=_MUTATION_ERRORS,
    summary="Update a product",
    description=(
        "Partially update a product. `existing_images` (JSON list) is the set "
        "of current images to keep; omit it to keep all of them."
    ),
)
async def update_product(
    product_id: str,
    service: ServiceDep,
    caller_id: CallerDep,
    name: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    price: Annotated[str | None, Form()] = None,
    category: Annotated[str | None, Form()] = None,
    stock: Annotated[str | None, Form()] = None,
    is_discounted: Annotated[str | None, Form()] = None,
    discounted_price: Annotated[str | None, Form()] = None,
    colors: Annotated[str | None, Form()] = None,
    sizes: Annotated[str | None, Form()] = None,
    is_new_arrival: Annotated[str | None, Form()] = None,
    existing_images: Annotated[str | None, Form(description="JSON: [{storage_id, url}]")] = None,
    images: Annotated[list[UploadFile] | None, File()] = None,
) -> ProductMutationResponse:
    """Update a product owned by the caller."""
    patch = ProductPatch(
        name=name,
        description=description,
        price=_parse_decimal(price, "price"),
        category=_parse_category(category),
        stock=_parse_int(stock, "stock"),
        is_discounted=_parse_bool(is_discounted),
        discounted_price=_parse_decimal(discounted_price, "discounted_price"),
        colors=_parse_colors(colors),
        sizes=_parse_sizes(sizes),
        is_new_arrival=_parse_bool(is_new_arrival),
        existing_images=_parse_images(existing_images),
    )
    files = await _read_files(images)

    result = await service.update_product(product_id, caller_id, patch, files)

    return ProductMutationResponse(
        product=product_to_response(result.product),
        warning=warning_to_response(result.warning),
    )


@router.delete(
    "/{product_id}",
    response_model=ProductDeleteResponse,
    responses=_MUTATION_ERRORS,
    summary="Delete a product",
)
async def delete_product(
    product_id: str,
    service: ServiceDep,
    caller_id: CallerDep,
) -> ProductDeleteResponse:
    """Delete a product owned by the caller and release its images."""
    result = await service.delete_product(product_id, caller_id)
    return ProductDeleteResponse(
        product_id=result.product_id,
        warning=warning_to_response(result.warning),
    )
