"""
utils/file_storage.py

Image blob storage for property photos.

Two backends share one contract (upload / delete_one / delete_many):
  * LocalBlobStore      - files under MEDIA_ROOT/properties, served at /media
  * CloudinaryBlobStore - Cloudinary image uploads

Routers only talk to the contract through the `get_blob_store` dependency,
so switching STORAGE_BACKEND never touches router code. Deletions are
best-effort: failures are logged and never raised, since an orphaned blob
is a lesser harm than a database change that fails to complete.
"""

import io
import logging
import re
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import aiofiles
import aiofiles.os
import cloudinary
import cloudinary.api
import cloudinary.uploader
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.exceptions import InternalError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
MAX_IMAGE_SIZE_MB = 10
MAX_IMAGE_SIZE_BYTES = MAX_IMAGE_SIZE_MB * 1024 * 1024
MAX_IMAGES_PER_REQUEST = 5

# Map file extensions → canonical content type
_EXT_TO_CONTENT_TYPE = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}

_CONTENT_TYPE_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

LOCAL_URL_MARKER = "/media/properties/"

# https://res.cloudinary.com/<cloud>/image/upload/v1712345678/imoveis/abc123.jpg
#   → public id "imoveis/abc123"
_CLOUDINARY_URL_RE = re.compile(
    r"/upload/(?:v\d+/)?(?P<public_id>[^?#]+?)(?:\.[A-Za-z0-9]+)?(?:[?#].*)?$"
)


def public_id_from_url(url: str) -> Optional[str]:
    """Extract the Cloudinary public id from a delivery URL, or None if it is not one."""
    if not url or "res.cloudinary.com" not in url:
        return None
    match = _CLOUDINARY_URL_RE.search(url)
    return match.group("public_id") if match else None


def filename_from_local_url(url: str) -> Optional[str]:
    if not url or LOCAL_URL_MARKER not in url:
        return None
    name = Path(url.split(LOCAL_URL_MARKER)[-1]).name
    return name or None


def resolve_content_type(content_type: Optional[str], filename: Optional[str]) -> Tuple[str, str]:
    """
    Return (content_type, extension) for an uploaded file.

    iOS / some Android clients send 'application/octet-stream' instead of the
    real MIME type, so we fall back to inspecting the filename extension.
    """
    content_type = (content_type or "").lower()

    if content_type in ALLOWED_IMAGE_TYPES:
        return content_type, _CONTENT_TYPE_TO_EXT[content_type]

    ext = Path(filename or "").suffix.lower()
    if ext in ALLOWED_EXTENSIONS:
        return _EXT_TO_CONTENT_TYPE[ext], ext if ext != ".jpeg" else ".jpg"

    raise ValidationError(
        f"Cannot determine image type for '{filename}' (content-type: '{content_type}'). "
        "Please upload a JPEG, PNG, or WebP image."
    )


class PreparedImage:
    __slots__ = ("data", "content_type", "extension", "filename")

    def __init__(self, data: bytes, content_type: str, extension: str, filename: str):
        self.data = data
        self.content_type = content_type
        self.extension = extension
        self.filename = filename


async def prepare_images(files: Optional[List[UploadFile]]) -> List[PreparedImage]:
    """Read and validate every upload before any of them is stored."""
    real_files = [f for f in (files or []) if f is not None and f.filename]
    if len(real_files) > MAX_IMAGES_PER_REQUEST:
        raise ValidationError(f"At most {MAX_IMAGES_PER_REQUEST} images may be sent at once.")

    prepared = []
    for f in real_files:
        content_type, ext = resolve_content_type(f.content_type, f.filename)
        contents = await f.read()
        if len(contents) > MAX_IMAGE_SIZE_BYTES:
            raise ValidationError(f"Image '{f.filename}' exceeds {MAX_IMAGE_SIZE_MB}MB limit.")
        prepared.append(PreparedImage(contents, content_type, ext, f.filename))
    return prepared


class BlobStore:
    """Upload/delete contract for image blobs."""

    async def upload(self, data: bytes, content_type: str, extension: str) -> str:
        raise NotImplementedError

    async def delete_one(self, url: str) -> None:
        raise NotImplementedError

    async def delete_many(self, urls: Iterable[str]) -> None:
        for url in urls:
            await self.delete_one(url)


class LocalBlobStore(BlobStore):
    def __init__(self, media_root: str, base_url: str):
        self.images_dir = Path(media_root) / "properties"
        self.base_url = base_url.rstrip("/")

    async def upload(self, data: bytes, content_type: str, extension: str) -> str:
        self.images_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{uuid.uuid4().hex}{extension}"
        async with aiofiles.open(self.images_dir / filename, "wb") as out:
            await out.write(data)
        return f"{self.base_url}{LOCAL_URL_MARKER}{filename}"

    async def delete_one(self, url: str) -> None:
        filename = filename_from_local_url(url)
        if not filename:
            logger.warning("Not a local image URL, skipping delete: %s", url)
            return
        try:
            await aiofiles.os.remove(self.images_dir / filename)
        except FileNotFoundError:
            # Already gone
            pass
        except OSError:
            logger.warning("Failed to delete image file %s", filename, exc_info=True)


class CloudinaryBlobStore(BlobStore):
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,  # Always use HTTPS
        )
        self.folder = folder

    async def upload(self, data: bytes, content_type: str, extension: str) -> str:
        result = await run_in_threadpool(
            cloudinary.uploader.upload,
            io.BytesIO(data),
            resource_type="image",
            folder=self.folder,
            overwrite=False,
        )
        url = result.get("secure_url") or result.get("url")
        if not url:
            raise InternalError("Image upload did not return a URL.")
        return url

    async def delete_one(self, url: str) -> None:
        public_id = public_id_from_url(url)
        if not public_id:
            logger.warning("Cannot extract Cloudinary public id from %s", url)
            return
        try:
            await run_in_threadpool(cloudinary.uploader.destroy, public_id, resource_type="image")
        except Exception:
            logger.warning("Failed to delete Cloudinary image %s", public_id, exc_info=True)

    async def delete_many(self, urls: Iterable[str]) -> None:
        public_ids = [pid for pid in (public_id_from_url(u) for u in urls) if pid]
        if not public_ids:
            return
        try:
            await run_in_threadpool(cloudinary.api.delete_resources, public_ids, resource_type="image")
        except Exception:
            logger.warning("Failed to bulk delete %d Cloudinary images", len(public_ids), exc_info=True)


async def save_property_images(store: BlobStore, images: List[PreparedImage]) -> List[str]:
    """Upload prepared images in order. If one fails, the ones already stored are removed."""
    urls = []
    try:
        for image in images:
            urls.append(await store.upload(image.data, image.content_type, image.extension))
    except Exception as e:
        logger.exception("Image upload failed after %d of %d files", len(urls), len(images))
        await store.delete_many(urls)
        if isinstance(e, InternalError):
            raise
        raise InternalError("Failed to save images.") from e
    return urls


@lru_cache
def get_blob_store() -> BlobStore:
    if settings.STORAGE_BACKEND == "cloudinary":
        return CloudinaryBlobStore(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
            settings.CLOUDINARY_FOLDER,
        )
    return LocalBlobStore(settings.MEDIA_ROOT, settings.BASE_URL)
