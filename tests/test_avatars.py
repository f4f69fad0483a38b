"""Unit tests for media/avatars.py -- Cloudinary-backed profile pictures.

Covers:
- upload() sends the image to the avatars folder and returns public_id + url
- destroy() removes by public_id
- Provider errors and missing configuration raise AvatarStorageError
"""

from __future__ import annotations

from unittest.mock import patch

import cloudinary.exceptions
import pytest

from media.avatars import AvatarStorageError, AvatarUploader, UploadedImage


@pytest.fixture
def uploader() -> AvatarUploader:
    return AvatarUploader(cloud_name="demo", api_key="key", api_secret="secret")


def test_upload_returns_public_id_and_secure_url(uploader):
    result = {"public_id": "avatars/xyz", "secure_url": "https://res.example.com/xyz.png", "url": "http://x"}
    with patch("media.avatars.cloudinary.uploader.upload", return_value=result) as upload:
        image = uploader.upload("data:image/png;base64,AAAA")
    assert image == UploadedImage(public_id="avatars/xyz", url="https://res.example.com/xyz.png")
    upload.assert_called_once_with("data:image/png;base64,AAAA", folder="avatars", width=150)


def test_destroy_by_public_id(uploader):
    with patch("media.avatars.cloudinary.uploader.destroy") as destroy:
        uploader.destroy("avatars/xyz")
    destroy.assert_called_once_with("avatars/xyz")


def test_provider_error_is_wrapped(uploader):
    with patch("media.avatars.cloudinary.uploader.upload", side_effect=cloudinary.exceptions.Error("bad image")):
        with pytest.raises(AvatarStorageError, match="bad image"):
            uploader.upload("data:image/png;base64,AAAA")


def test_unconfigured_uploader_refuses():
    uploader = AvatarUploader()
    assert not uploader.is_configured
    with pytest.raises(AvatarStorageError, match="not configured"):
        uploader.upload("data:image/png;base64,AAAA")
    with pytest.raises(AvatarStorageError):
        uploader.destroy("avatars/xyz")
