"""Domain exceptions.

Every error the catalog core can produce is a DomainError subclass, so the
boundary layer can map them to responses in a single place.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Request Errors (raised before any external side effect)
# ============================================================================


class ValidationError(DomainError):
    """A required field is missing or a value violates a catalog rule."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error.

        Args:
            message: Human-readable error message.
            field: Name of the offending input field, if known.
            details: Optional additional context.
        """
        details = dict(details or {})
        if field is not None:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class NotFoundError(DomainError):
    """A product with the requested ID does not exist."""

    def __init__(self, product_id: str) -> None:
        """Initialize not found error.

        Args:
            product_id: The unknown product ID.
        """
        super().__init__(
            f"Product not found: {product_id}",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class AuthorizationError(DomainError):
    """The caller does not own the product it tries to mutate."""

    def __init__(self, product_id: str, caller_id: str) -> None:
        """Initialize authorization error.

        Args:
            product_id: Product the caller attempted to change.
            caller_id: Identity of the caller.
        """
        super().__init__(
            f"Account {caller_id} does not own product {product_id}",
            details={"product_id": product_id, "caller_id": caller_id},
        )
        self.product_id = product_id
        self.caller_id = caller_id


# ============================================================================
# Collaborator Errors
# ============================================================================


class MediaUploadError(DomainError):
    """A file in an upload batch could not be stored.

    The whole batch is rejected; anything already stored from that batch has
    been released by the time this is raised.
    """

    def __init__(
        self,
        message: str,
        requested: int,
        leaked_storage_ids: list[str] | None = None,
    ) -> None:
        """Initialize media upload error.

        Args:
            message: Human-readable error message.
            requested: Number of files in the failed batch.
            leaked_storage_ids: Staged objects whose cleanup also failed.
        """
        leaked = list(leaked_storage_ids or [])
        super().__init__(
            message,
            details={"requested": requested, "leaked_storage_ids": leaked},
        )
        self.requested = requested
        self.leaked_storage_ids = leaked


class MediaReleaseWarning(DomainError):
    """Some storage objects could not be deleted.

    Never blocks the surrounding mutation. Returned on the mutation result so
    the caller can retry or audit the orphaned objects.
    """

    def __init__(self, failed_storage_ids: list[str]) -> None:
        """Initialize media release warning.

        Args:
            failed_storage_ids: Storage IDs that are still present.
        """
        super().__init__(
            f"Failed to release {len(failed_storage_ids)} storage object(s)",
            details={"failed_storage_ids": list(failed_storage_ids)},
        )
        self.failed_storage_ids = list(failed_storage_ids)

    @property
    def failure_count(self) -> int:
        """Number of storage objects left behind."""
        return len(self.failed_storage_ids)


class StoreError(DomainError):
    """A persisted-store operation failed."""

    def __init__(self, operation: str, product_id: str | None = None) -> None:
        """Initialize store error.

        Args:
            operation: Repository operation that failed (e.g., "insert").
            product_id: Product involved, if any.
        """
        super().__init__(
            f"Product store failed during {operation}",
            details={"operation": operation, "product_id": product_id},
        )
        self.operation = operation
        self.product_id = product_id
