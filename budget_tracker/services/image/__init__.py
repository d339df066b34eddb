"""Receipt image services package."""

from budget_tracker.services.image.cloudinary_service import (
    ALLOWED_CONTENT_TYPES,
    InvalidReceiptError,
    ReceiptError,
    ReceiptUploadError,
    ReceiptUploadService,
)

__all__ = [
    "ALLOWED_CONTENT_TYPES",
    "InvalidReceiptError",
    "ReceiptError",
    "ReceiptUploadError",
    "ReceiptUploadService",
]
