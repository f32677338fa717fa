"""Product taxonomy.

A fixed two-level hierarchy (main category > sub-category) plus the
canonical size labels. The taxonomy is built once per process and injected
into the query resolver and the product service.

Hierarchy format of the embedded definition:
    TOPS > TSHIRT, POLO_SHIRT, TANK_TOP
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from listing.domain.exceptions import ValidationError
from listing.domain.value_objects import CategoryRef, SizeOption


# ============================================================================
# Token Resolution Results
# ============================================================================


@dataclass(frozen=True)
class MainMatch:
    """Token is exactly a main category name."""

    main: str


@dataclass(frozen=True)
class SubMatch:
    """Token is exactly a sub-category name.

    Attributes:
        sub: The matched sub-category.
        mains: Main categories that list this sub-category.
    """

    sub: str
    mains: tuple[str, ...]


@dataclass(frozen=True)
class Ambiguous:
    """Token matches neither level exactly; callers fall back to looser matching."""

    token: str


CategoryMatch = MainMatch | SubMatch | Ambiguous


class Taxonomy:
    """Immutable category hierarchy and size enumeration.

    Example usage:
        taxonomy = Taxonomy.default()
        match = taxonomy.resolve_category_token("TSHIRT")  # SubMatch
        taxonomy.validate_category(CategoryRef("TOPS", "JEANS"))  # raises
    """

    EMBEDDED_HIERARCHY = '''
TOPS > TSHIRT, POLO_SHIRT, TANK_TOP, BLOUSE, SHIRT, TUNIC
BOTTOMS > JEANS, TROUSERS, CHINOS, SHORTS, CARGO_PANTS, LEGGINGS, SKIRT, PALAZZOS, DUNGAREES
OUTERWEAR > LEATHER_JACKET, COAT
SPORTSWEAR > JERSEY, SWEATSHIRT, HOODIE, FLEECE
ACCESSORIES > GLOVES, CAPS, SOCKS, WRIST_BANDS
'''.strip()

    EMBEDDED_SIZES = (
        SizeOption(name="2X Small", value="2XS"),
        SizeOption(name="X Small", value="XS"),
        SizeOption(name="Small", value="S"),
        SizeOption(name="Medium", value="M"),
        SizeOption(name="Large", value="L"),
        SizeOption(name="X Large", value="XL"),
        SizeOption(name="2X Large", value="2XL"),
        SizeOption(name="3X Large", value="3XL"),
        SizeOption(name="4X Large", value="4XL"),
        SizeOption(name="5X Large", value="5XL"),
    )

    def __init__(
        self,
        hierarchy: Mapping[str, Sequence[str]],
        sizes: Iterable[SizeOption],
    ) -> None:
        """Initialize taxonomy.

        Args:
            hierarchy: Main category name -> allowed sub-category names.
            sizes: Canonical size labels.
        """
        self._hierarchy: dict[str, tuple[str, ...]] = {
            main: tuple(subs) for main, subs in hierarchy.items()
        }
        self._mains_by_sub: dict[str, tuple[str, ...]] = {}
        for main, subs in self._hierarchy.items():
            for sub in subs:
                self._mains_by_sub[sub] = self._mains_by_sub.get(sub, ()) + (main,)
        self._sizes: tuple[SizeOption, ...] = tuple(sizes)
        self._sizes_by_value = {size.value: size for size in self._sizes}

    @classmethod
    def default(cls) -> "Taxonomy":
        """Build the embedded apparel taxonomy."""
        return cls(cls._parse_hierarchy(cls.EMBEDDED_HIERARCHY.splitlines()), cls.EMBEDDED_SIZES)

    @staticmethod
    def _parse_hierarchy(lines: Iterable[str]) -> dict[str, list[str]]:
        hierarchy: dict[str, list[str]] = {}
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#") or ">" not in line:
                continue
            main, subs = line.split(">", 1)
            hierarchy[main.strip()] = [s.strip() for s in subs.split(",") if s.strip()]
        return hierarchy

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def main_categories(self) -> tuple[str, ...]:
        """Main category names in declaration order."""
        return tuple(self._hierarchy)

    @property
    def sizes(self) -> tuple[SizeOption, ...]:
        """Canonical size labels in declaration order."""
        return self._sizes

    def sub_categories(self, main: str) -> tuple[str, ...]:
        """Allowed sub-categories for a main category (empty if unknown)."""
        return self._hierarchy.get(main, ())

    def all_sub_categories(self) -> tuple[str, ...]:
        """Every sub-category across all main categories."""
        return tuple(self._mains_by_sub)

    def resolve_category_token(self, token: str) -> CategoryMatch:
        """Classify a free category token.

        Exact main-category names win over exact sub-category names; anything
        else is ambiguous.

        Args:
            token: Category token from a request.

        Returns:
            MainMatch, SubMatch or Ambiguous.
        """
        token = token.strip()
        if token in self._hierarchy:
            return MainMatch(main=token)
        if token in self._mains_by_sub:
            return SubMatch(sub=token, mains=self._mains_by_sub[token])
        return Ambiguous(token=token)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_category(self, category: CategoryRef) -> CategoryRef:
        """Check that `category.sub` belongs to `category.main`.

        Raises:
            ValidationError: Unknown main category or mismatched pair.
        """
        if category.main not in self._hierarchy:
            raise ValidationError(
                f"Unknown main category: {category.main}",
                field="category.main",
                details={"allowed": list(self.main_categories)},
            )
        if category.sub not in self._hierarchy[category.main]:
            raise ValidationError(
                f"Sub-category {category.sub} is not allowed under {category.main}",
                field="category.sub",
                details={"allowed": list(self._hierarchy[category.main])},
            )
        return category

    def validate_sizes(self, sizes: Iterable[SizeOption]) -> list[SizeOption]:
        """Check sizes against the canonical labels and drop duplicates.

        Name and value must both belong to the same canonical size.

        Raises:
            ValidationError: A size is not canonical.
        """
        result: list[SizeOption] = []
        for size in sizes:
            canonical = self._sizes_by_value.get(size.value)
            if canonical is None or canonical.name != size.name:
                raise ValidationError(
                    f"Invalid size: {size.name!r}/{size.value!r}",
                    field="sizes",
                    details={"allowed": [s.to_dict() for s in self._sizes]},
                )
            if canonical not in result:
                result.append(canonical)
        return result

    def validate_size_values(self, values: Iterable[str]) -> tuple[str, ...]:
        """Check size filter values (e.g. "S", "XL") and drop duplicates.

        Raises:
            ValidationError: A value is not a canonical size value.
        """
        result: list[str] = []
        for value in values:
            if value not in self._sizes_by_value:
                raise ValidationError(
                    f"Invalid size value: {value!r}",
                    field="sizes",
                    details={"allowed": list(self._sizes_by_value)},
                )
            if value not in result:
                result.append(value)
        return tuple(result)


_taxonomy: Taxonomy | None = None


def get_taxonomy() -> Taxonomy:
    """Get the process-wide taxonomy, building it on first use.

    Returns:
        Taxonomy instance.
    """
    global _taxonomy
    if _taxonomy is None:
        _taxonomy = Taxonomy.default()
    return _taxonomy
