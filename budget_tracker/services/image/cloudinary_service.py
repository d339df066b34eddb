"""
Receipt Upload Service using Cloudinary

DESIGN DECISION: Receipt photos go to Cloudinary because:
1. Reliable cloud infrastructure with public HTTPS URLs
2. Simple API
3. Free tier sufficient for personal use

The spreadsheet row only stores the URL that comes back.

This service handles:
1. Type and size checks
2. A decode check of the image bytes (HEIC is passed through unchecked)
3. Upload under a timestamped key
4. Returning the public URL
"""

import time
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from budget_tracker.config import (
    AppSettings,
    CloudinarySettings,
    ConfigurationError,
    get_settings,
)
from budget_tracker.models.responses import UploadedReceipt


logger = structlog.get_logger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}


class ReceiptError(Exception):
    """Base exception for receipt upload errors."""
    pass


class InvalidReceiptError(ReceiptError):
    """The file is not an acceptable receipt image."""
    pass


class ReceiptUploadError(ReceiptError):
    """Failed to upload the receipt to Cloudinary."""
    pass


class ReceiptUploadService:
    """
    Service for storing receipt photos in Cloudinary.

    Flow:
    1. Receive raw image bytes
    2. Validate type, size and decodability
    3. Upload (retried on transient failures)
    4. Return the secure URL
    """

    def __init__(
        self,
        settings: Optional[CloudinarySettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        try:
            self._settings = settings or get_settings().cloudinary
        except ValidationError as e:
            raise ConfigurationError(
                "Receipt storage is not configured. Please set CLOUDINARY_CLOUD_NAME, "
                "CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET."
            ) from e
        self._app_settings = app_settings or get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    @staticmethod
    def build_key(filename: str, timestamp_ms: Optional[int] = None) -> str:
        """
        Generate the object key.

        Format: receipts/{epoch_ms}.{extension}
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        extension = "jpg"
        if "." in filename:
            extension = filename.rsplit(".", 1)[1].lower() or "jpg"
        return f"receipts/{timestamp_ms}.{extension}"

    def validate(self, image_bytes: bytes, content_type: str) -> None:
        """
        Reject anything that is not a receipt photo we can store.

        Raises:
            InvalidReceiptError: Wrong type, empty, too large or undecodable
        """
        content_type = (content_type or "").lower()
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise InvalidReceiptError("Invalid file type. Allowed: JPEG, PNG, WebP, HEIC")

        if not image_bytes:
            raise InvalidReceiptError("No file provided")

        if len(image_bytes) > self._app_settings.max_upload_size_bytes:
            raise InvalidReceiptError(
                f"File too large. Maximum size is {self._app_settings.max_upload_size_mb}MB"
            )

        # Pillow cannot open HEIC without a plugin
        if content_type == "image/heic":
            return

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidReceiptError(f"File is not a readable image: {e}") from e

    @retry(
        retry=retry_if_exception_type(ReceiptUploadError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _put_object(self, image_bytes: bytes, public_id: str) -> dict:
        """Upload to Cloudinary and return its response."""
        self._configure()
        try:
            return cloudinary.uploader.upload(
                BytesIO(image_bytes),
                public_id=public_id,
                folder=self._settings.folder,
                resource_type="image",
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            logger.warning("receipt_upload_attempt_failed", error=str(e))
            raise ReceiptUploadError(f"Cloudinary error: {e}") from e

    async def upload(
        self,
        image_bytes: bytes,
        filename: str,
        content_type: str,
    ) -> UploadedReceipt:
        """
        Validate and store a receipt photo.

        Args:
            image_bytes: Raw file bytes
            filename: Original filename (for the extension)
            content_type: MIME type reported by the browser

        Returns:
            UploadedReceipt with the public URL

        Raises:
            InvalidReceiptError: If the file is rejected
            ReceiptUploadError: If Cloudinary keeps failing
        """
        self.validate(image_bytes, content_type)

        key = self.build_key(filename)
        # Cloudinary appends its own format suffix
        public_id = key.rsplit(".", 1)[0]

        result = self._put_object(image_bytes, public_id)

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise ReceiptUploadError("No URL returned from Cloudinary")

        logger.info("receipt_uploaded", key=key, size_bytes=len(image_bytes))

        return UploadedReceipt(
            url=url,
            key=result.get("public_id", key),
            content_type=content_type.lower(),
            size_bytes=len(image_bytes),
        )
