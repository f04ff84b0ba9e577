"""
Local media storage for uploads.

Files land under ``<UPLOAD_DIR>/<bucket>/`` and are served statically from
``/uploads``. Names are ``<prefix>-<unix ms>-<random><ext>`` so concurrent
uploads never collide.
"""
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from cyclebees.core.config import settings
from cyclebees.core.exceptions import ValidationError
from cyclebees.core.logging_config import get_logger

logger = get_logger("upload_service")

UPLOAD_DIR = Path(settings.UPLOAD_DIR_ABS)

REPAIR_REQUESTS = "repair-requests"
BICYCLES = "bicycles"
PROMOTIONAL = "promotional"
PROFILE_PHOTOS = "profile-photos"
BUCKETS = (REPAIR_REQUESTS, BICYCLES, PROMOTIONAL, PROFILE_PHOTOS)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}
ALLOWED_VIDEO_TYPES = {"video/mp4", "video/x-msvideo", "video/avi", "video/quicktime"}
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov"}

MAX_REPAIR_IMAGES = 5
MAX_REPAIR_VIDEOS = 1


@dataclass
class StoredFile:
    url: str
    file_type: str  # image / video
    path: Path


def ensure_upload_dirs() -> None:
    for bucket in BUCKETS:
        (UPLOAD_DIR / bucket).mkdir(parents=True, exist_ok=True)


def classify(file: UploadFile) -> Optional[str]:
    """Return 'image', 'video' or None for an upload, by Content-Type or extension."""
    content_type = (file.content_type or "").strip().lower()
    ext = Path(file.filename or "").suffix.lower()
    if content_type in ALLOWED_IMAGE_TYPES or (
        content_type in ("", "application/octet-stream") and ext in ALLOWED_IMAGE_EXTENSIONS
    ):
        return "image" if ext in ALLOWED_IMAGE_EXTENSIONS or not ext else None
    if content_type in ALLOWED_VIDEO_TYPES or (
        content_type in ("", "application/octet-stream") and ext in ALLOWED_VIDEO_EXTENSIONS
    ):
        return "video" if ext in ALLOWED_VIDEO_EXTENSIONS or not ext else None
    return None


def _unique_name(prefix: str, original: Optional[str], default_ext: str) -> str:
    ext = Path(original or "").suffix.lower() or default_ext
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


async def read_checked(file: UploadFile, file_type: str, limit: Optional[int] = None) -> bytes:
    content = await file.read()
    if limit is None:
        limit = settings.MAX_VIDEO_SIZE if file_type == "video" else settings.MAX_UPLOAD_SIZE
    if len(content) > limit:
        raise ValidationError(
            f"File too large. Max size: {limit // (1024 * 1024)}MB",
            errors=[{"field": "files", "message": f"{file.filename} exceeds {limit // (1024 * 1024)}MB"}],
        )
    return content


def write_file(bucket: str, prefix: str, original_name: Optional[str], content: bytes, default_ext: str = ".jpg") -> StoredFile:
    directory = UPLOAD_DIR / bucket
    directory.mkdir(parents=True, exist_ok=True)
    filename = _unique_name(prefix, original_name, default_ext)
    path = directory / filename
    with open(path, "wb") as f:
        f.write(content)
    return StoredFile(url=f"/uploads/{bucket}/{filename}", file_type="image", path=path)


async def save_image(file: UploadFile, bucket: str, prefix: str) -> StoredFile:
    """Validate and store a single image upload."""
    if classify(file) != "image":
        raise ValidationError(
            "Only image files are allowed!",
            errors=[{"field": "image", "message": f"Unsupported file {file.filename!r}"}],
        )
    content = await read_checked(file, "image")
    stored = write_file(bucket, prefix, file.filename, content)
    logger.info("Stored image %s", stored.url)
    return stored


async def prepare_repair_media(files: List[UploadFile]) -> List[tuple]:
    """
    Validate repair request media before anything is written: at most five
    images and one video. Returns ``(upload, file_type, content)`` tuples.
    """
    prepared = []
    images = videos = 0
    for upload in files or []:
        if not upload.filename:
            continue
        file_type = classify(upload)
        if file_type is None:
            raise ValidationError(
                "Only image and video files are allowed!",
                errors=[{"field": "files", "message": f"Unsupported file {upload.filename!r}"}],
            )
        if file_type == "image":
            images += 1
        else:
            videos += 1
        # repair media shares one 10MB cap
        content = await read_checked(upload, file_type, settings.MAX_VIDEO_SIZE)
        prepared.append((upload, file_type, content))
    if images > MAX_REPAIR_IMAGES or videos > MAX_REPAIR_VIDEOS:
        raise ValidationError(
            f"Up to {MAX_REPAIR_IMAGES} images and {MAX_REPAIR_VIDEOS} video are allowed",
            errors=[{"field": "files", "message": f"Got {images} images and {videos} videos"}],
        )
    return prepared


def store_repair_media(prepared: List[tuple], stored: Optional[List[StoredFile]] = None) -> List[StoredFile]:
    """
    Write validated media to disk, appending each file to ``stored`` as soon
    as it exists. If a write fails, the files already written are removed.
    """
    stored = [] if stored is None else stored
    try:
        for upload, file_type, content in prepared:
            default_ext = ".mp4" if file_type == "video" else ".jpg"
            item = write_file(REPAIR_REQUESTS, "files", upload.filename, content, default_ext)
            item.file_type = file_type
            stored.append(item)
    except OSError:
        remove_files(stored)
        del stored[:]
        raise
    return stored


def remove_files(stored: List[StoredFile]) -> None:
    """Best-effort cleanup when the surrounding transaction fails."""
    for item in stored:
        try:
            item.path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove orphaned upload %s", item.path, exc_info=True)


def delete_url(url: Optional[str]) -> None:
    """Delete a previously stored file given its public ``/uploads/...`` URL."""
    if not url or not url.startswith("/uploads/"):
        return
    path = UPLOAD_DIR / url[len("/uploads/"):]
    if path.exists() and str(path.resolve()).startswith(str(UPLOAD_DIR.resolve())):
        path.unlink()
