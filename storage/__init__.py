"""Object storage for listing, post and profile images.

Files live under ``<storage_root>/<bucket>/<path>`` and are served from
``<storage_public_url>/<bucket>/<path>``. Uploads never overwrite an existing
object, so callers generate a randomized path with random_image_path().
"""

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

import aiofiles
import aiofiles.os

from config import settings_conf

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}

class StorageError(Exception):
    """Base exception for storage operations."""
    pass

class InvalidImageError(StorageError):
    """Raised when an upload is empty, too large or not an image type."""
    pass

@dataclass
class ImageUpload:
    """An image file handed in by a client."""
    filename: str
    data: bytes
    content_type: Optional[str] = None

def random_image_path(prefix: str, filename: str) -> str:
    """Build a collision-resistant object path such as ``shoes/k3j9x_1712345678901.png``."""
    ext = PurePosixPath(filename).suffix.lstrip('.').lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise InvalidImageError(f"Unsupported image type: {filename}")
    name = f"{secrets.token_hex(6)}_{int(time.time() * 1000)}.{ext}"
    return f"{prefix.strip('/')}/{name}"

class ImageStore:
    """Writes objects into one bucket and hands out their public URLs."""

    def __init__(
        self,
        root: Optional[str] = None,
        bucket: Optional[str] = None,
        public_url: Optional[str] = None,
        max_bytes: Optional[int] = None
    ):
        self.root = Path(root or settings_conf['storage_root'])
        self.bucket = bucket or settings_conf['storage_bucket']
        self.public_url = (public_url or settings_conf['storage_public_url']).rstrip('/')
        self.max_bytes = max_bytes or settings_conf['max_image_bytes']

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    def _resolve(self, path: str) -> Path:
        target = (self.bucket_dir / path).resolve()
        if not path or self.bucket_dir.resolve() not in target.parents:
            raise StorageError(f"Invalid object path: {path!r}")
        return target

    def get_public_url(self, path: str) -> str:
        return f"{self.public_url}/{self.bucket}/{path.lstrip('/')}"

    async def upload_image(self, path: str, data: bytes) -> str:
        """Store an image and return its public URL.

        Raises:
            InvalidImageError: If data is empty or larger than max_image_bytes
            StorageError: If the path is invalid, taken, or the write fails
        """
        if not data:
            raise InvalidImageError("Image file is empty")
        if len(data) > self.max_bytes:
            raise InvalidImageError(
                f"Image is {len(data)} bytes, limit is {self.max_bytes}"
            )

        target = self._resolve(path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            # 'xb' refuses to overwrite an existing object
            async with aiofiles.open(target, 'xb') as f:
                await f.write(data)
        except FileExistsError:
            raise StorageError(f"Object already exists: {path}")
        except OSError as e:
            logger.error(f"Error uploading {path}: {e}")
            raise StorageError(f"Failed to upload image: {e}")

        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")
        return self.get_public_url(path)

    async def upload(self, prefix: str, image: ImageUpload) -> str:
        """Upload an ImageUpload under a randomized path below prefix."""
        return await self.upload_image(random_image_path(prefix, image.filename), image.data)

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await aiofiles.os.remove(target)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")

    async def discard(self, url: Optional[str]) -> None:
        """Remove an upload by its public URL after the write it belonged to failed."""
        if not url:
            return
        path = url.split(f"/{self.bucket}/", 1)[-1]
        try:
            await self.delete(path)
        except StorageError as e:
            logger.warning(f"Could not remove orphaned image {path}: {e}")

# Create global instance
store = ImageStore()

async def upload_image(path: str, data: bytes) -> str:
    """Upload to the default store and return the public URL."""
    return await store.upload_image(path, data)

__all__ = [
    'ImageStore',
    'ImageUpload',
    'StorageError',
    'InvalidImageError',
    'random_image_path',
    'upload_image',
    'store'
]
