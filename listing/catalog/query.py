"""Query resolution for product listings.

Turns raw listing parameters (category token, price bounds, sizes, free
text, sort, paging) into a store-agnostic predicate plus a sort and page
plan. Predicates only ever reference the fields in `ProductField`, so
request parameters cannot inject arbitrary keys.

Example usage:
    resolver = QueryResolver(get_taxonomy())
    query = resolver.resolve(
        QueryParams(category="TOPS", search="cotton", sizes="S,M"),
        BROWSE,
    )
    items, total = await repository.find(query.predicate, query.sort, query.page)
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

from listing.catalog.taxonomy import MainMatch, SubMatch, Taxonomy
from listing.domain.exceptions import ValidationError


# ============================================================================
# Predicate
# ============================================================================


class ProductField(str, Enum):
    """Fields a predicate may reference."""

    ID = "id"
    OWNER = "owner"
    NAME = "name"
    DESCRIPTION = "description"
    CATEGORY_MAIN = "category.main"
    CATEGORY_SUB = "category.sub"
    SEARCH_TEXT = "searchText"
    PRICE = "price"
    SIZE_VALUE = "sizes.value"
    IS_NEW_ARRIVAL = "isNewArrival"


@dataclass(frozen=True)
class Equals:
    """Field equals a value exactly."""

    field: ProductField
    value: str | bool


@dataclass(frozen=True)
class NotEquals:
    """Field differs from a value."""

    field: ProductField
    value: str


@dataclass(frozen=True)
class Contains:
    """Field contains `text`, case-insensitively."""

    field: ProductField
    text: str


@dataclass(frozen=True)
class InRange:
    """Field lies within inclusive bounds; a missing bound is unconstrained."""

    field: ProductField
    gte: Decimal | None = None
    lte: Decimal | None = None


@dataclass(frozen=True)
class AnyIn:
    """At least one of the field's values is in `values` (set intersection)."""

    field: ProductField
    values: tuple[str, ...]


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of clauses."""

    clauses: tuple["Clause", ...]


@dataclass(frozen=True)
class AllOf:
    """Conjunction of clauses. An empty conjunction matches everything."""

    clauses: tuple["Clause", ...] = ()


Clause = Equals | NotEquals | Contains | InRange | AnyIn | AnyOf | AllOf
Predicate = AllOf


# ============================================================================
# Sort and Paging
# ============================================================================


class SortField(str, Enum):
    """Sortable fields, keyed by their wire names."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    PRICE = "price"
    NAME = "name"
    STOCK = "stock"


class SortDirection(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortSpec:
    """A single `{field: direction}` sort key."""

    field: SortField = SortField.CREATED_AT
    direction: SortDirection = SortDirection.DESC


@dataclass(frozen=True)
class PageSpec:
    """Page number and size, both at least 1."""

    page: int = 1
    limit: int = 12

    @property
    def skip(self) -> int:
        """Number of results before this page."""
        return (self.page - 1) * self.limit


class CategoryFallback(str, Enum):
    """How an ambiguous category token is matched."""

    EXACT = "exact"
    SUBSTRING = "substring"


@dataclass(frozen=True)
class ListingProfile:
    """Defaults that differ between listing surfaces.

    Attributes:
        name: Profile name, used in logs.
        default_limit: Page size when the request gives none (or an invalid one).
        category_fallback: Matching used for ambiguous category tokens.
    """

    name: str
    default_limit: int
    category_fallback: CategoryFallback


CURATED = ListingProfile("curated", 8, CategoryFallback.EXACT)
BROWSE = ListingProfile("browse", 12, CategoryFallback.SUBSTRING)
CATEGORY_PAGE = ListingProfile("category", 20, CategoryFallback.EXACT)
RELATED = ListingProfile("related", 6, CategoryFallback.EXACT)


# ============================================================================
# Resolver
# ============================================================================


@dataclass
class QueryParams:
    """Raw listing parameters as received from the caller.

    Attributes:
        category: Free category token.
        min_price: Inclusive lower price bound.
        max_price: Inclusive upper price bound.
        sizes: Comma-separated string or list of size values.
        search: Free text.
        sort_by: Sort field wire name (default createdAt).
        sort_order: "asc" or "desc" (default desc).
        page: Page number (default 1).
        limit: Page size (default depends on the listing profile).
    """

    category: str | None = None
    min_price: str | int | float | Decimal | None = None
    max_price: str | int | float | Decimal | None = None
    sizes: str | Sequence[str] | None = None
    search: str | None = None
    sort_by: str | None = None
    sort_order: str | None = None
    page: str | int | None = None
    limit: str | int | None = None


@dataclass(frozen=True)
class ResolvedQuery:
    """Predicate, sort and page plan ready for the catalog store."""

    predicate: Predicate
    sort: SortSpec = field(default_factory=SortSpec)
    page: PageSpec = field(default_factory=PageSpec)


class QueryResolver:
    """Resolves listing parameters into a `ResolvedQuery`.

    Category and search constraints are combined with AND at the top level;
    the search sub-clauses are OR-ed among themselves.
    """

    SEARCH_FIELDS = (
        ProductField.NAME,
        ProductField.DESCRIPTION,
        ProductField.CATEGORY_MAIN,
        ProductField.CATEGORY_SUB,
        ProductField.SEARCH_TEXT,
    )

    def __init__(self, taxonomy: Taxonomy, max_limit: int = 100) -> None:
        """Initialize resolver.

        Args:
            taxonomy: Category hierarchy and size labels.
            max_limit: Upper clamp for page sizes.
        """
        self.taxonomy = taxonomy
        self.max_limit = max_limit

    def resolve(
        self,
        params: QueryParams,
        profile: ListingProfile = BROWSE,
        scope: Sequence[Clause] = (),
    ) -> ResolvedQuery:
        """Resolve parameters into a query plan.

        Args:
            params: Raw listing parameters.
            profile: Listing defaults (page size, category fallback).
            scope: Extra clauses fixed by the caller (owner, related category).

        Returns:
            ResolvedQuery.

        Raises:
            ValidationError: Malformed price bound or unknown size value.
        """
        clauses: list[Clause] = list(scope)

        if params.category is not None and params.category.strip():
            clauses.append(self.category_clause(params.category, profile.category_fallback))

        price = self.price_clause(params.min_price, params.max_price)
        if price is not None:
            clauses.append(price)

        sizes = self.size_clause(params.sizes)
        if sizes is not None:
            clauses.append(sizes)

        if params.search is not None and params.search.strip():
            clauses.append(self.search_clause(params.search))

        return ResolvedQuery(
            predicate=AllOf(tuple(clauses)),
            sort=self.sort_spec(params.sort_by, params.sort_order),
            page=self.page_spec(params.page, params.limit, profile.default_limit),
        )

    def category_clause(self, token: str, fallback: CategoryFallback) -> Clause:
        """Build the category constraint for a token.

        Exact main match, then exact sub match, then `fallback` over both fields.
        """
        match = self.taxonomy.resolve_category_token(token)
        if isinstance(match, MainMatch):
            return Equals(ProductField.CATEGORY_MAIN, match.main)
        if isinstance(match, SubMatch):
            return Equals(ProductField.CATEGORY_SUB, match.sub)
        if fallback is CategoryFallback.EXACT:
            return AnyOf((
                Equals(ProductField.CATEGORY_MAIN, match.token),
                Equals(ProductField.CATEGORY_SUB, match.token),
            ))
        return AnyOf((
            Contains(ProductField.CATEGORY_MAIN, match.token),
            Contains(ProductField.CATEGORY_SUB, match.token),
        ))

    def price_clause(
        self,
        min_price: str | int | float | Decimal | None,
        max_price: str | int | float | Decimal | None,
    ) -> InRange | None:
        """Build an inclusive price range; None when neither bound is given."""
        gte = _parse_price(min_price, "minPrice")
        lte = _parse_price(max_price, "maxPrice")
        if gte is None and lte is None:
            return None
        if gte is not None and lte is not None and gte > lte:
            raise ValidationError(
                "minPrice cannot be greater than maxPrice",
                field="minPrice",
                details={"minPrice": str(gte), "maxPrice": str(lte)},
            )
        return InRange(ProductField.PRICE, gte=gte, lte=lte)

    def size_clause(self, sizes: str | Sequence[str] | None) -> AnyIn | None:
        """Build a size intersection clause; None when no sizes are requested."""
        if sizes is None:
            return None
        entries = [sizes] if isinstance(sizes, str) else list(sizes)
        values = [v.strip() for e in entries if e for v in e.split(",") if v.strip()]
        if not values:
            return None
        return AnyIn(ProductField.SIZE_VALUE, self.taxonomy.validate_size_values(values))

    def search_clause(self, text: str) -> AnyOf:
        """Match free text against any searchable field."""
        text = text.strip()
        return AnyOf(tuple(Contains(f, text) for f in self.SEARCH_FIELDS))

    def sort_spec(self, sort_by: str | None, sort_order: str | None) -> SortSpec:
        """Build the sort key; unknown values fall back to createdAt / desc."""
        try:
            sort_field = SortField(sort_by) if sort_by else SortField.CREATED_AT
        except ValueError:
            sort_field = SortField.CREATED_AT
        try:
            direction = SortDirection(sort_order.lower()) if sort_order else SortDirection.DESC
        except ValueError:
            direction = SortDirection.DESC
        return SortSpec(field=sort_field, direction=direction)

    def page_spec(
        self,
        page: str | int | None,
        limit: str | int | None,
        default_limit: int,
    ) -> PageSpec:
        """Build paging; non-numeric or non-positive values use the defaults."""
        page_number = _positive_int(page) or 1
        page_size = _positive_int(limit) or default_limit
        return PageSpec(page=page_number, limit=min(page_size, self.max_limit))


def _parse_price(value: str | int | float | Decimal | None, name: str) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError(f"{name} must be a number", field=name) from e
    if not price.is_finite():
        raise ValidationError(f"{name} must be a finite number", field=name)
    return price


def _positive_int(value: str | int | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number >= 1 else None
