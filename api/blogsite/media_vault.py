"""Image storage for blog covers and user avatars.

Images live in sub-vaults of VAULT_LOCATION ("cover/" and "avatar/") using a
hash-based folder structure derived from the image UUID, so that no single
folder collects too many files.

Example:
    If the image ID is "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
    and it hashes to "9f86d0..."
    The cover will be stored at: VAULT_LOCATION/cover/9f/86/d0/a1b2c3d4-e5f6-7890-abcd-ef1234567890.png
    and served as: /vault/cover/9f/86/d0/a1b2c3d4-e5f6-7890-abcd-ef1234567890.png

Bytes are stored as uploaded (no re-encoding) so animated GIFs stay animated.
"""

from __future__ import annotations

import hashlib
import io
import logging
import os
from pathlib import Path
from urllib.parse import urlparse
from uuid import UUID, uuid4

from PIL import Image, UnidentifiedImageError

from .settings import MAX_IMAGE_UPLOAD_BYTES

logger = logging.getLogger(__name__)

COVER_KIND = "cover"
AVATAR_KIND = "avatar"
VAULT_KINDS = (COVER_KIND, AVATAR_KIND)

# Public URL prefix; main.py mounts the vault directory here
VAULT_URL_PREFIX = "/vault"

# Allowed image MIME types
ALLOWED_MIME_TYPES: dict[str, str] = {
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
}

_EXT_TO_MIME = {
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


class InvalidImageError(ValueError):
    """Raised when an upload is not an acceptable image."""


def get_vault_location() -> Path:
    """Get the vault location from environment variable."""
    vault_path = os.environ.get("VAULT_LOCATION")
    if not vault_path:
        raise ValueError("VAULT_LOCATION environment variable is not set")
    return Path(vault_path)


def hash_image_id(image_id: UUID) -> str:
    """Hash the image ID using SHA256 for folder structure derivation."""
    return hashlib.sha256(str(image_id).encode()).hexdigest()


def compute_storage_shard(image_id: UUID) -> str:
    """Return the "xx/yy/zz" shard for an image ID."""
    hash_value = hash_image_id(image_id)
    return f"{hash_value[0:2]}/{hash_value[2:4]}/{hash_value[4:6]}"


def _normalize_extension(extension: str) -> str:
    return extension.lower() if extension.startswith(".") else f".{extension.lower()}"


def get_image_file_path(kind: str, image_id: UUID, extension: str) -> Path:
    """
    Get the full file path for an image.

    Args:
        kind: Sub-vault name ("cover" or "avatar")
        image_id: The UUID of the image
        extension: The file extension (e.g., ".png", ".jpg", ".gif")
    """
    if kind not in VAULT_KINDS:
        raise ValueError(f"Unknown vault kind: {kind}")
    shard = compute_storage_shard(image_id)
    return get_vault_location() / kind / shard / f"{image_id}{_normalize_extension(extension)}"


def get_image_url(kind: str, image_id: UUID, extension: str) -> str:
    """Public URL path for an image, e.g. /vault/cover/a1/b2/c3/<uuid>.png"""
    shard = compute_storage_shard(image_id)
    return f"{VAULT_URL_PREFIX}/{kind}/{shard}/{image_id}{_normalize_extension(extension)}"


def resolve_mime_type(content_type: str | None, filename: str | None) -> str:
    """
    Pick the MIME type for an upload from its content type, falling back to the
    file extension.

    Raises:
        InvalidImageError: If neither yields an allowed image type
    """
    mime_type = (content_type or "").lower()
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"
    if mime_type in ALLOWED_MIME_TYPES:
        return mime_type

    name = filename or ""
    ext = name.lower().rsplit(".", 1)[-1] if "." in name else ""
    mime_type = _EXT_TO_MIME.get(ext, "")
    if mime_type not in ALLOWED_MIME_TYPES:
        raise InvalidImageError("Only images (jpeg, jpg, png, gif, webp) are allowed")
    return mime_type


def validate_image_content(file_content: bytes) -> None:
    """
    Check size and that Pillow can identify the bytes as an image.

    Raises:
        InvalidImageError: If the upload is empty, too large or not an image
    """
    file_size = len(file_content)
    if file_size == 0:
        raise InvalidImageError("Uploaded image is empty")

    if file_size > MAX_IMAGE_UPLOAD_BYTES:
        max_mb = MAX_IMAGE_UPLOAD_BYTES / (1024 * 1024)
        actual_mb = file_size / (1024 * 1024)
        raise InvalidImageError(
            f"File size ({actual_mb:.2f} MB) exceeds maximum of {max_mb} MB"
        )

    try:
        with Image.open(io.BytesIO(file_content)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info(f"Rejected unreadable image upload: {e}")
        raise InvalidImageError(
            "Could not read image file. Please ensure it's a valid image."
        ) from e


def save_image(kind: str, file_content: bytes, mime_type: str) -> str:
    """
    Validate and store an uploaded image.

    Args:
        kind: Sub-vault name ("cover" or "avatar")
        file_content: Raw bytes as uploaded
        mime_type: Content type already resolved by resolve_mime_type

    Returns:
        The public URL of the stored image

    Raises:
        InvalidImageError: If the content is not an acceptable image
        OSError: If there's an error writing the file
    """
    validate_image_content(file_content)

    mime_type_lower = mime_type.lower()
    if mime_type_lower not in ALLOWED_MIME_TYPES:
        raise InvalidImageError(
            f"MIME type '{mime_type}' is not allowed. Allowed types: {list(ALLOWED_MIME_TYPES.keys())}"
        )

    image_id = uuid4()
    extension = ALLOWED_MIME_TYPES[mime_type_lower]
    file_path = get_image_file_path(kind, image_id, extension)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(file_path, "wb") as f:
            f.write(file_content)
    except OSError as e:
        logger.error(f"Failed to save {kind} image {image_id}: {e}")
        raise

    logger.info(f"Saved {kind} image {image_id} to {file_path}")
    return get_image_url(kind, image_id, extension)


def _path_from_public_url(image_url: str) -> Path | None:
    """Map a /vault/<kind>/<c1>/<c2>/<c3>/<uuid>.<ext> URL back to its file."""
    path = urlparse(image_url).path if "://" in image_url else image_url
    parts = path.split("/")
    # ['', 'vault', kind, c1, c2, c3, filename]
    if len(parts) != 7 or f"/{parts[1]}" != VAULT_URL_PREFIX or parts[2] not in VAULT_KINDS:
        return None

    filename = parts[6]
    if "." not in filename:
        return None
    uuid_str, ext = filename.rsplit(".", 1)
    try:
        image_id = UUID(uuid_str)
    except ValueError:
        return None

    # Recompute the path instead of trusting the URL's shard segments
    return get_image_file_path(parts[2], image_id, ext)


def delete_image_by_url(image_url: str | None) -> bool:
    """
    Delete an image referenced by its public URL.

    A missing file is not an error, so deleting twice is harmless.

    Returns:
        True if a file was deleted, False otherwise
    """
    if not image_url:
        return False

    file_path = _path_from_public_url(image_url)
    if file_path is None:
        logger.warning(f"Not a vault image URL, skipping delete: {image_url}")
        return False

    if not file_path.exists():
        logger.warning(f"Image not found at {file_path}")
        return False

    file_path.unlink()
    logger.info(f"Deleted image {file_path}")
    return True
