"""
Media location and delivery.
Maps an already-authorized (size, photo id) pair to a stored relative path and hands that
path to a delegated responder. Nothing here reads image bytes.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import Response
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from dao.photo_dao import PhotoDAO
from services.exceptions import BadRequest, NotFound
from services.file_storage import MediaStore, SIZE_DIRECTORIES, IMAGE_SIZES
from services.security import INTERNAL_MEDIA_PREFIX

logger = logging.getLogger(__name__)

# Named aliases for the breakpoint widths, smallest first
SIZE_ALIASES = dict(zip(('small', 'medium', 'large'), (str(size) for size in IMAGE_SIZES)))

ORIGINAL_CACHE_CONTROL = "private, max-age=0, no-cache"
DERIVED_CACHE_CONTROL = "public, max-age=31536000, immutable"

@dataclass(frozen=True)
class MediaLocation:
    size: str
    relative_path: str
    content_type: str
    cache_control: str

def normalize_size(size: str) -> str:
    """Canonical size label, or BadRequest for anything outside the enumeration."""
    label = SIZE_ALIASES.get(size, size)
    if label not in SIZE_DIRECTORIES:
        raise BadRequest("Invalid size")
    return label

def build_media_url(size: str, photo_id: str, share_token: Optional[str] = None) -> str:
    """Stable API URL for a media variant; storage keys never leave the server."""
    if share_token:
        return f"/api/share/{share_token}/media/{size}/{photo_id}"
    return f"/api/media/{size}/{photo_id}"

def build_size_urls(photo_id: str, share_token: Optional[str] = None) -> dict:
    return {label: build_media_url(label, photo_id, share_token) for label in SIZE_DIRECTORIES}

class MediaLocator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def locate(self, size: str, photo_id: str) -> MediaLocation:
        # Cheap reject before touching the database
        label = normalize_size(size)

        photo = await PhotoDAO(self.db).get_by_id(photo_id)
        if not photo:
            raise NotFound()

        return MediaLocation(
            size=label,
            relative_path=f"{SIZE_DIRECTORIES[label]}/{photo.storage_key}",
            content_type=photo.content_type,
            cache_control=ORIGINAL_CACHE_CONTROL if label == 'original' else DERIVED_CACHE_CONTROL
        )

def media_response(location: MediaLocation, store: MediaStore) -> Response:
    """
    Hand the vetted path to the configured responder: nginx via X-Accel-Redirect,
    or Starlette's FileResponse when serving directly.
    """
    headers = {"Cache-Control": location.cache_control}

    if store.delivery == "direct":
        full_path = store.resolve_path(location.relative_path)
        if not full_path.is_file():
            logger.error(f"Media file missing on disk: {location.relative_path}")
            raise NotFound()
        return FileResponse(full_path, media_type=location.content_type, headers=headers)

    headers["X-Accel-Redirect"] = f"{INTERNAL_MEDIA_PREFIX}/{location.relative_path}"
    return Response(status_code=200, media_type=location.content_type, headers=headers)
