"""Client for the external image-processing function.

The function downloads a product image, converts it and stores it in object
storage under the product identifier.  We only care whether it did so.
"""

from __future__ import annotations

import enum
import logging

import httpx

from pricetrack.config import Settings, get_settings

logger = logging.getLogger(__name__)


class UploadStatus(enum.Enum):
    UPLOADED = "uploaded"
    ALREADY_EXISTS = "already_exists"
    GREYSCALE = "greyscale"
    SKIPPED = "skipped"
    FAILED = "failed"


class ImageUploader:
    """Sends image URLs to the upload function configured in settings."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(60.0),
                follow_redirects=True,
            )
        return self._client

    async def upload(self, image_url: str, product_id: str, product_name: str) -> UploadStatus:
        func_url = self.settings.image_upload_url
        if not func_url:
            logger.debug("No image upload URL configured, skipping %s", product_id)
            return UploadStatus.SKIPPED
        if not func_url.startswith("http"):
            logger.error("image_upload_url is invalid: %s", func_url)
            return UploadStatus.FAILED

        client = await self._get_client()
        try:
            resp = await client.get(f"{func_url}{product_id}&source={image_url}")
            message = resp.text
        except httpx.HTTPError:
            logger.exception("Image upload request failed for %s", product_id)
            return UploadStatus.FAILED

        if "S3 Upload of Full-Size" in message:
            logger.info("New Image: %8s | %-50.50s", product_id, product_name)
            return UploadStatus.UPLOADED
        if "already exists" in message:
            return UploadStatus.ALREADY_EXISTS
        if "greyscale" in message:
            logger.info("Image %s is greyscale, skipping", product_id)
            return UploadStatus.GREYSCALE

        logger.warning(
            "Unexpected image upload response for %s (HTTP %d): %.200s",
            product_id,
            resp.status_code,
            message,
        )
        return UploadStatus.FAILED

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
