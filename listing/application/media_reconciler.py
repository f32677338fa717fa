"""Media reconciler.

Keeps a product's image list consistent with the object store:
- staging uploads is all-or-nothing,
- merging decides the final image list and which images it drops,
- releasing is best effort and reports leftovers instead of raising.

Ordering between these steps and the document write is the product
service's job; this module only guarantees each step on its own.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from listing.domain.exceptions import MediaReleaseWarning, MediaUploadError, ValidationError
from listing.domain.value_objects import MediaFile, ProductImage
from listing.infrastructure.object_store import ObjectStoreGateway, ObjectStoreUploadError

logger = structlog.get_logger()


@dataclass
class ImageMerge:
    """Result of merging a product's images.

    Attributes:
        images: Final image list for the product.
        dropped: Previously referenced images no longer in `images`; release
            them only after the product is saved.
    """

    images: list[ProductImage] = field(default_factory=list)
    dropped: list[ProductImage] = field(default_factory=list)

    @property
    def dropped_storage_ids(self) -> list[str]:
        """Storage IDs of dropped images."""
        return [i.storage_id for i in self.dropped]


class MediaReconciler:
    """Drives uploads and deletes against the object store.

    Example usage:
        reconciler = MediaReconciler(get_object_store())
        staged = await reconciler.stage_new_images(files)
        merge = reconciler.merge_image_lists(product.image_list, retained, staged)
        ...save product...
        warning = await reconciler.release_images(merge.dropped_storage_ids)
    """

    def __init__(self, gateway: ObjectStoreGateway, folder: str = "products") -> None:
        """Initialize reconciler.

        Args:
            gateway: Object store gateway.
            folder: Folder hint passed with every upload.
        """
        self.gateway = gateway
        self.folder = folder

    async def stage_new_images(self, files: Sequence[MediaFile]) -> list[ProductImage]:
        """Upload every file or none of them.

        Args:
            files: Files to upload, in display order.

        Returns:
            Staged images in upload order.

        Raises:
            MediaUploadError: Any upload failed. Objects already stored from
                this batch have been released (or are listed as leaked).
        """
        if not files:
            return []

        try:
            staged = await self.gateway.upload_many(files, self.folder)
        except ObjectStoreUploadError as e:
            leaked = await self.discard_staged(e.uploaded)
            logger.error(
                "Image upload failed",
                requested=len(files),
                stored_before_failure=len(e.uploaded),
                leaked=leaked,
                error=e.message,
            )
            raise MediaUploadError(
                f"Failed to upload images: {e.message}",
                requested=len(files),
                leaked_storage_ids=leaked,
            ) from e

        if len(staged) != len(files):
            leaked = await self.discard_staged(staged)
            logger.error(
                "Image upload returned wrong count",
                requested=len(files),
                stored=len(staged),
            )
            raise MediaUploadError(
                f"Expected {len(files)} uploaded images, got {len(staged)}",
                requested=len(files),
                leaked_storage_ids=leaked,
            )

        logger.info(
            "Images staged",
            count=len(staged),
            storage_ids=[i.storage_id for i in staged],
        )
        return staged

    def check_retained(
        self,
        current: Sequence[ProductImage],
        retained: Sequence[ProductImage] | None,
    ) -> list[ProductImage] | None:
        """Resolve a declared retained set against the product's images.

        Entries are matched by storage ID; the stored entry is kept, in the
        caller's order.

        Args:
            current: The product's current images.
            retained: Declared retained set, or None if not declared.

        Returns:
            Retained images taken from `current`, or None if not declared.

        Raises:
            ValidationError: The set names an image the product does not
                reference, or names one twice.
        """
        if retained is None:
            return None

        by_id = {i.storage_id: i for i in current}
        result: list[ProductImage] = []
        seen: set[str] = set()
        for image in retained:
            if image.storage_id not in by_id:
                raise ValidationError(
                    f"Image {image.storage_id} does not belong to this product",
                    field="existing_images",
                )
            if image.storage_id in seen:
                raise ValidationError(
                    f"Image {image.storage_id} is listed more than once",
                    field="existing_images",
                )
            seen.add(image.storage_id)
            result.append(by_id[image.storage_id])
        return result

    def merge_image_lists(
        self,
        current: Sequence[ProductImage],
        retained: Sequence[ProductImage] | None,
        newly_uploaded: Sequence[ProductImage],
    ) -> ImageMerge:
        """Compute a product's final image list.

        A declared retained set (even empty) is authoritative and anything
        not in it is dropped. An undeclared set keeps every current image.
        New uploads always follow, in upload order.

        Args:
            current: The product's current images.
            retained: Declared retained set (already checked), or None.
            newly_uploaded: Images staged for this update.

        Returns:
            ImageMerge with the final list and the dropped images.
        """
        if retained is None:
            return ImageMerge(images=list(current) + list(newly_uploaded))

        kept_ids = {i.storage_id for i in retained}
        return ImageMerge(
            images=list(retained) + list(newly_uploaded),
            dropped=[i for i in current if i.storage_id not in kept_ids],
        )

    async def release_images(self, storage_ids: Sequence[str]) -> MediaReleaseWarning | None:
        """Delete objects, best effort.

        Args:
            storage_ids: Storage IDs to delete.

        Returns:
            None when everything was released, otherwise a MediaReleaseWarning
            listing what is left in the store.
        """
        ids = list(storage_ids)
        if not ids:
            return None

        result = await self.gateway.delete_many(ids)
        if result.ok:
            logger.info("Images released", count=len(ids), storage_ids=ids)
            return None

        logger.warning(
            "Image release incomplete",
            requested=len(ids),
            failed=result.failed,
        )
        return MediaReleaseWarning(result.failed)

    async def discard_staged(self, staged: Sequence[ProductImage]) -> list[str]:
        """Release images staged by an aborted operation.

        Args:
            staged: Images uploaded but never committed to a product.

        Returns:
            Storage IDs that could not be released.
        """
        warning = await self.release_images([i.storage_id for i in staged])
        return warning.failed_storage_ids if warning else []
