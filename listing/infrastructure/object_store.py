"""Object store HTTP client for the external media service.

Provides the gateway interface the media reconciler depends on, and an
httpx implementation that talks to the media service.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import structlog

from listing.domain.exceptions import ValidationError
from listing.domain.value_objects import MediaFile, ProductImage
from listing.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Gateway Interface
# ============================================================================


@dataclass
class DeleteResult:
    """Outcome of a bulk delete.

    Attributes:
        succeeded: Storage IDs that no longer exist.
        failed: Storage IDs that may still exist.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every requested object was released."""
        return not self.failed


class ObjectStoreError(Exception):
    """Error from the object store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ObjectStoreUploadError(ObjectStoreError):
    """An upload batch stopped part way.

    Attributes:
        uploaded: Objects stored before the failure; the caller owns their cleanup.
    """

    def __init__(
        self,
        message: str,
        uploaded: Sequence[ProductImage] = (),
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code)
        self.uploaded = list(uploaded)


class ObjectStoreGateway(Protocol):
    """Operations the catalog needs from the media service."""

    async def upload_many(
        self, files: Sequence[MediaFile], folder: str
    ) -> list[ProductImage]:
        """Store files in order; raise ObjectStoreUploadError on the first failure."""
        ...

    async def delete_many(self, storage_ids: Sequence[str]) -> DeleteResult:
        """Delete objects; never raises, failures are reported in the result."""
        ...


# ============================================================================
# HTTP Client
# ============================================================================


class HttpObjectStore:
    """HTTP client for the media service.

    Uploads are sent one file at a time so a failure can report exactly
    which objects were already stored.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        request_id: str | None = None,
    ) -> None:
        """Initialize object store client.

        Args:
            base_url: Media service base URL.
            api_key: Bearer token for the media service.
            timeout: Request timeout in seconds; a hung upload fails the batch.
            request_id: Optional request ID for correlation.
        """
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.request_id = request_id
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            if self.request_id:
                headers["X-Request-ID"] = self.request_id
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def upload_many(
        self, files: Sequence[MediaFile], folder: str
    ) -> list[ProductImage]:
        """Upload files in order.

        Args:
            files: Files to store.
            folder: Folder hint for the media service.

        Returns:
            Stored images, in upload order.

        Raises:
            ObjectStoreUploadError: On the first failed upload, carrying the
                images stored before it.
        """
        uploaded: list[ProductImage] = []
        for media in files:
            try:
                client = await self._get_client()
                response = await client.post(
                    "/objects",
                    data={"folder": folder},
                    files={"file": (media.filename, media.content, media.content_type)},
                )
            except httpx.RequestError as e:
                logger.error(
                    "Object upload request failed",
                    filename=media.filename,
                    uploaded=len(uploaded),
                    error=str(e),
                )
                raise ObjectStoreUploadError(
                    f"Upload request failed: {str(e)}", uploaded
                ) from e

            if response.status_code not in (200, 201):
                raise ObjectStoreUploadError(
                    f"Failed to upload {media.filename}: {response.text}",
                    uploaded,
                    response.status_code,
                )

            uploaded.append(self._image_from_response(response, uploaded))

        return uploaded

    async def delete_many(self, storage_ids: Sequence[str]) -> DeleteResult:
        """Delete objects in one batch call.

        Objects the service reports as already gone count as released.

        Args:
            storage_ids: Storage IDs to delete.

        Returns:
            DeleteResult; on transport failure every ID is reported failed.
        """
        ids = list(storage_ids)
        if not ids:
            return DeleteResult()

        try:
            client = await self._get_client()
            response = await client.post("/objects/batch-delete", json={"storage_ids": ids})
        except httpx.RequestError as e:
            logger.warning("Object delete request failed", storage_ids=ids, error=str(e))
            return DeleteResult(failed=ids)

        if response.status_code != 200:
            logger.warning(
                "Object delete rejected",
                storage_ids=ids,
                status_code=response.status_code,
            )
            return DeleteResult(failed=ids)

        try:
            data = response.json()
            released = set(data.get("deleted", [])) | set(data.get("not_found", []))
        except (ValueError, AttributeError, TypeError):
            logger.warning(
                "Object delete response unreadable",
                storage_ids=ids,
                body=response.text[:200],
            )
            return DeleteResult(failed=ids)

        return DeleteResult(
            succeeded=[i for i in ids if i in released],
            failed=[i for i in ids if i not in released],
        )

    @staticmethod
    def _image_from_response(
        response: httpx.Response, uploaded: list[ProductImage]
    ) -> ProductImage:
        try:
            data = response.json()
            return ProductImage(storage_id=data["storage_id"], url=data["url"])
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            raise ObjectStoreUploadError(
                f"Malformed upload response: {response.text[:200]!r}",
                uploaded,
                response.status_code,
            ) from e


# Global client instance
_object_store: HttpObjectStore | None = None


def get_object_store() -> HttpObjectStore:
    """Get the object store client singleton.

    Returns:
        HttpObjectStore configured from settings.
    """
    global _object_store
    if _object_store is None:
        _object_store = HttpObjectStore(
            base_url=settings.media_service_url,
            api_key=settings.media_service_api_key,
            timeout=settings.media_timeout_seconds,
        )
    return _object_store
