"""
media/avatars.py -- Profile picture storage on Cloudinary.

The auth service only needs two operations: upload an image (a data URI or
URL sent by the client) and destroy a previous upload by its public_id. Both
go through the cloudinary SDK; the account credentials come from Settings.

Uploads land in the "avatars" folder, scaled to 150px wide.

Layer rule: no imports from api/, auth/, cache/, or mail/. Import from core/
is allowed.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from core.config import Settings

logger = logging.getLogger("elearning.media")

_FOLDER = "avatars"
_WIDTH = 150


class AvatarStorageError(Exception):
    """Raised when the storage provider is unavailable or rejects a request."""


class UploadedImage(NamedTuple):
    public_id: str
    url: str


class AvatarUploader:
    def __init__(self, *, cloud_name: str = "", api_key: str = "", api_secret: str = "") -> None:
        self.is_configured = bool(cloud_name and api_key and api_secret)
        if self.is_configured:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True,
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AvatarUploader":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )

    def upload(self, image: str) -> UploadedImage:
        """Upload image and return its public_id and HTTPS url."""
        self._require_configured()
        try:
            result = cloudinary.uploader.upload(image, folder=_FOLDER, width=_WIDTH)
        except cloudinary.exceptions.Error as exc:
            raise AvatarStorageError(str(exc)) from exc
        url = result.get("secure_url") or result.get("url")
        logger.info("Avatar uploaded public_id=%s", result["public_id"])
        return UploadedImage(public_id=result["public_id"], url=url)

    def destroy(self, public_id: str) -> None:
        self._require_configured()
        try:
            cloudinary.uploader.destroy(public_id)
        except cloudinary.exceptions.Error as exc:
            raise AvatarStorageError(str(exc)) from exc
        logger.info("Avatar destroyed public_id=%s", public_id)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise AvatarStorageError("Avatar storage is not configured.")
