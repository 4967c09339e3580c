############################################################
#
# bloghut - Community Blogging Platform
#
# uploads.py: Storage for uploaded post images and avatars
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Image upload storage.

Storage layout (relative to ``upload_root``)::

    /posts/<uuid>_<unix time>.<ext>     featured images
    /avatars/<uuid>_<unix time>.<ext>   profile pictures

Only the bare filename is stored in the database; the directory is implied
by the kind of image.
"""

import asyncio
import io
import time
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from PIL import Image, UnidentifiedImageError

from backend.app.core.exceptions import InvalidUpload
from backend.app.logging_config import get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)

POST_IMAGE = "post"
AVATAR = "avatar"

_FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "GIF": ".gif",
    "WEBP": ".webp",
}


def _sniff_format(data: bytes) -> Optional[str]:
    """Pillow format name of an image payload, or None if it is not an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            return img.format
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None


class ImageStorage:
    """Writes, deletes and locates uploaded images on local disk."""

    def __init__(self, base_path: Optional[str] = None):
        self._settings = get_settings()
        self._base_path = Path(base_path or self._settings.upload_root)
        self._dirs = {
            POST_IMAGE: self._settings.post_images_dir,
            AVATAR: self._settings.avatars_dir,
        }
        self._max_bytes = {
            POST_IMAGE: self._settings.post_image_max_size_mb * 1024 * 1024,
            AVATAR: self._settings.avatar_max_size_mb * 1024 * 1024,
        }

    @property
    def base_path(self) -> Path:
        return self._base_path

    async def initialize(self) -> None:
        """Create the upload directories."""
        for sub_dir in self._dirs.values():
            (self._base_path / sub_dir).mkdir(parents=True, exist_ok=True)
        logger.info("image_storage_initialized", path=str(self._base_path))

    def _path(self, kind: str, filename: str) -> Path:
        # Only ever join a bare name; stored values never contain directories
        return self._base_path / self._dirs[kind] / Path(filename).name

    async def store(self, data: bytes, kind: str = POST_IMAGE) -> str:
        """
        Validate and store an uploaded image.

        Args:
            data: Raw upload bytes
            kind: POST_IMAGE or AVATAR

        Returns:
            The generated filename

        Raises:
            InvalidUpload: empty, oversized, or not an accepted image type
        """
        if not data:
            raise InvalidUpload("No file uploaded")
        max_bytes = self._max_bytes[kind]
        if len(data) > max_bytes:
            raise InvalidUpload(
                f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
            )

        image_format = await asyncio.to_thread(_sniff_format, data)
        if image_format not in self._settings.upload_allowed_formats:
            raise InvalidUpload("Invalid file type. Allowed: JPG, PNG, GIF, WEBP")

        filename = f"{uuid.uuid4().hex}_{int(time.time())}{_FORMAT_EXTENSIONS[image_format]}"
        file_path = self._path(kind, filename)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(data)

        logger.info("image_stored", kind=kind, filename=filename, size=len(data))
        return filename

    async def delete(self, filename: Optional[str], kind: str = POST_IMAGE) -> bool:
        """
        Remove a stored image. Failures are logged, never raised, so a
        missing file cannot block deleting the row that referenced it.
        """
        if not filename or filename == self._settings.default_avatar:
            return False
        file_path = self._path(kind, filename)
        try:
            file_path.unlink()
        except FileNotFoundError:
            logger.warning("image_missing_on_delete", kind=kind, filename=filename)
            return False
        except OSError as e:
            logger.error("image_delete_failed", kind=kind, filename=filename, error=str(e))
            return False
        logger.info("image_deleted", kind=kind, filename=filename)
        return True

    def url(self, filename: Optional[str], kind: str = POST_IMAGE) -> Optional[str]:
        """Public URL of a stored image (served from the /uploads mount)."""
        if not filename:
            if kind == AVATAR:
                return f"/static/img/{self._settings.default_avatar}"
            return None
        return f"/uploads/{self._dirs[kind]}/{Path(filename).name}"


# Global instance
_image_storage: Optional[ImageStorage] = None


def get_image_storage() -> ImageStorage:
    """Get the global image storage instance."""
    global _image_storage
    if _image_storage is None:
        _image_storage = ImageStorage()
    return _image_storage


def set_image_storage(storage: Optional[ImageStorage]) -> None:
    """Replace the global instance (tests point it at a temp directory)."""
    global _image_storage
    _image_storage = storage
