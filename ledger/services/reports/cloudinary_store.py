"""
Report Object Store using Cloudinary

DESIGN DECISION: Rendered report PDFs are stored in Cloudinary as "raw"
resources because:
1. The same account already serves as the project's blob store
2. Uploads return a stable HTTPS URL that the dashboard can link to
3. No bucket or CDN setup is required for a personal deployment

The server never renders PDFs. It receives the bytes produced by the
client and stores them under a generated key.
"""

import secrets
from abc import ABC, abstractmethod
from typing import Optional

import cloudinary
import cloudinary.uploader
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import CloudinarySettings, get_settings


logger = structlog.get_logger(__name__)


class ObjectStoreError(Exception):
    """Failed to store a blob in the object store."""
    pass


def build_report_key(user_id: int, year: int, month: int, slug: str = "report") -> str:
    """
    Generate the object key of a report PDF.

    Format: reports/{user_id}/{slug}-{year}-{MM}-{token}.pdf

    The random token keeps keys unique when a period is generated twice.
    """
    token = secrets.token_urlsafe(6)
    return f"reports/{user_id}/{slug}-{year}-{month:02d}-{token}.pdf"


class ObjectStoreInterface(ABC):
    """A blob store that returns a retrievable URL for every stored key."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> str:
        """
        Store a blob under a key.

        Returns:
            URL the blob can be downloaded from

        Raises:
            ObjectStoreError: If the blob could not be stored
        """
        pass


class CloudinaryObjectStore(ObjectStoreInterface):
    """
    Object store backed by Cloudinary raw uploads.

    Flow:
    1. Configure the SDK from settings on first use
    2. Upload the bytes with the key as public id
    3. Return the secure URL Cloudinary reports
    """

    def __init__(self, settings: Optional[CloudinarySettings] = None):
        self._settings = settings or get_settings().cloudinary
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

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload(self, key: str, data: bytes) -> dict:
        return cloudinary.uploader.upload(
            data,
            public_id=key,
            folder=self._settings.folder,
            resource_type="raw",
            overwrite=False,
        )

    async def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> str:
        self._configure()

        try:
            result = self._upload(key, data)
        except Exception as e:
            logger.error("report_upload_failed", key=key, error=str(e))
            raise ObjectStoreError(f"Failed to upload report: {e}") from e

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise ObjectStoreError("Failed to upload report: no URL returned from Cloudinary")

        logger.info(
            "report_uploaded",
            key=key,
            content_type=content_type,
            size=len(data),
        )
        return url
