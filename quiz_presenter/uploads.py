"""
Image upload checks and storage paths for quiz images and winner photos.
"""
import logging
import mimetypes
import re
import time
from typing import Optional

from .data_manager import DataStore
from .models import ImageUpload

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class UploadValidationError(ValueError):
    """Raised when a file is rejected before it is sent to storage."""
    pass


def resolve_content_type(upload: ImageUpload) -> Optional[str]:
    """Return the declared MIME type, falling back to a guess from the filename."""
    if upload.content_type:
        return upload.content_type.split(";")[0].strip().lower()
    guessed, _ = mimetypes.guess_type(upload.filename)
    return guessed


def validate_image_upload(upload: ImageUpload, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    """
    Check that an upload is an image within the size ceiling.

    Raises:
        UploadValidationError: If the file is not an image or is too large
    """
    content_type = resolve_content_type(upload)
    if not content_type or not content_type.startswith("image/"):
        raise UploadValidationError("Please select a valid image file.")

    if upload.size > max_bytes:
        raise UploadValidationError(f"Max file size is {max_bytes // (1024 * 1024)}MB.")


def safe_filename(filename: str) -> str:
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-.")
    return name or "upload"


def build_storage_path(prefix: str, owner: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Build ``<prefix>/<owner>/<millis>-<filename>``.

    Args:
        prefix: Top-level folder, e.g. ``quiz-images``
        owner: Quiz id or season name the file belongs to
        filename: Original file name
        timestamp_ms: Upload time in milliseconds, defaults to now
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{prefix}/{safe_filename(str(owner))}/{timestamp_ms}-{safe_filename(filename)}"


def upload_image(
    store: DataStore,
    bucket: str,
    prefix: str,
    owner: str,
    upload: ImageUpload,
    max_bytes: int = MAX_UPLOAD_BYTES
) -> str:
    """Validate and upload an image, returning its public URL."""
    validate_image_upload(upload, max_bytes)
    path = build_storage_path(prefix, owner, upload.filename)
    url = store.upload_file(bucket, path, upload.data, resolve_content_type(upload))
    logger.info(f"Uploaded image {upload.filename} ({upload.size} bytes) to {bucket}/{path}")
    return url
