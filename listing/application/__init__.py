"""Application services.

Coordinates product writes with the object store and runs listings.
"""

from listing.application.media_reconciler import ImageMerge, MediaReconciler
from listing.application.product_service import Page, ProductMutationResult, ProductService

__all__ = [
    "ImageMerge",
    "MediaReconciler",
    "Page",
    "ProductMutationResult",
    "ProductService",
]
