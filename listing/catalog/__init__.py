"""Product Catalog.

Provides the category taxonomy, listing query resolution, and persistence
for products.
"""

from listing.catalog.models import Product, ProductSize, build_search_text
from listing.catalog.query import (
    BROWSE,
    CATEGORY_PAGE,
    CURATED,
    RELATED,
    ListingProfile,
    PageSpec,
    QueryParams,
    QueryResolver,
    ResolvedQuery,
    SortSpec,
)
from listing.catalog.repository import ProductRepository
from listing.catalog.taxonomy import Ambiguous, MainMatch, SubMatch, Taxonomy, get_taxonomy

__all__ = [
    # Taxonomy
    "Taxonomy",
    "MainMatch",
    "SubMatch",
    "Ambiguous",
    "get_taxonomy",
    # Query
    "QueryParams",
    "QueryResolver",
    "ResolvedQuery",
    "ListingProfile",
    "PageSpec",
    "SortSpec",
    "BROWSE",
    "CATEGORY_PAGE",
    "CURATED",
    "RELATED",
    # Models
    "Product",
    "ProductSize",
    "build_search_text",
    # Repository
    "ProductRepository",
]
