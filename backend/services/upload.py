"""
Photo upload orchestration: derivative generation, then one transaction that writes
the photo, its tags and its album placement.
"""
import re
import uuid
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Iterable, List, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dao.album_dao import AlbumDAO, album_append_lock
from dao.photo_dao import PhotoDAO
from dao.tag_dao import TagDAO
from models.photo import Photo, Visibility
from services.exceptions import BadRequest, Conflict, NotFound, PayloadTooLarge
from services.file_storage import MediaStore, FileValidationError
from services.security import security_config, SecurityUtils, SLUG_SUFFIX_BYTES

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 50

@dataclass
class UploadInput:
    data: bytes
    filename: str
    mimetype: str
    title: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    album_id: Optional[str] = None
    visibility: Visibility = Visibility.PRIVATE

def slugify(value: str) -> str:
    """Lowercase, runs of non-alphanumerics become one hyphen, no edge hyphens."""
    return re.sub(r'[^a-z0-9]+', '-', value.lower().strip()).strip('-')

def parse_tags(values: Iterable[str]) -> List[str]:
    """Accept repeated fields and comma-joined values. Lowercased, de-duplicated, order kept."""
    tags = []
    for value in values or []:
        for tag in value.split(','):
            tag = tag.strip().lower()
            if tag and len(tag) <= MAX_TAG_LENGTH:
                tags.append(tag)
    return list(dict.fromkeys(tags))

def parse_visibility(value: Optional[str]) -> Visibility:
    return Visibility.SHARED if (value or '').strip().upper() == "SHARED" else Visibility.PRIVATE

def resolve_title(title: Optional[str], filename: Optional[str]) -> str:
    title = (title or '').strip()
    if title:
        return title
    return PurePath(filename or '').stem or "photo"

def build_slug(title: str) -> str:
    return f"{slugify(title) or 'photo'}-{SecurityUtils.generate_token(SLUG_SUFFIX_BYTES)}"

class UploadService:
    def __init__(self, db: AsyncSession, store: MediaStore):
        self.db = db
        self.store = store

    async def upload_photo(self, upload: UploadInput) -> Photo:
        """
        Validate, generate every variant, then persist.

        Raises:
            UnsupportedMediaType: mimetype outside the allow-list, before any I/O
            PayloadTooLarge: more than MAX_UPLOAD_MB of data
            NotFound: album_id names no album
            BadRequest: bytes do not decode as the declared type
            Conflict: storage key or slug collided on insert
        """
        ext = self.store.extension_for(upload.mimetype)

        if len(upload.data) > security_config.max_upload_bytes:
            raise PayloadTooLarge()
        if not upload.data:
            raise BadRequest("File is required")

        if upload.album_id and not await AlbumDAO(self.db).get_by_id(upload.album_id):
            raise NotFound("Album not found")

        photo_id = str(uuid.uuid4())
        storage_key = f"{photo_id}.{ext}"
        title = resolve_title(upload.title, upload.filename)

        try:
            processed = await self.store.process_upload(upload.data, storage_key, upload.mimetype)
        except FileValidationError as e:
            logger.warning(f"Rejected upload {upload.filename!r}: {e}")
            raise BadRequest(str(e))

        photo = Photo(
            id=photo_id,
            title=title,
            description=(upload.description or '').strip() or None,
            slug=build_slug(title),
            width=processed['width'],
            height=processed['height'],
            storage_key=storage_key,
            visibility=upload.visibility,
            sizes_json=processed['sizes']
        )

        try:
            await self._persist(photo, parse_tags(upload.tags), upload.album_id)
        except IntegrityError:
            await self.db.rollback()
            self.store.delete_variants(storage_key)
            logger.error(f"Unique constraint hit while saving photo {photo_id}")
            raise Conflict("Could not save photo")
        except Exception:
            await self.db.rollback()
            self.store.delete_variants(storage_key)
            raise

        await self.db.refresh(photo)
        logger.info(f"Photo uploaded: {photo_id} ({processed['width']}x{processed['height']})")
        return photo

    async def _persist(self, photo: Photo, tag_names: List[str], album_id: Optional[str]):
        if not album_id:
            tags = await TagDAO(self.db).get_or_create_many(tag_names)
            PhotoDAO(self.db).add_photo(photo, tags)
            await self.db.commit()
            return

        # The counter is read and advanced with no other append to this album in between
        async with album_append_lock(album_id):
            album_dao = AlbumDAO(self.db)
            album = await album_dao.get_for_update(album_id)
            if not album:
                raise NotFound("Album not found")

            tags = await TagDAO(self.db).get_or_create_many(tag_names)
            PhotoDAO(self.db).add_photo(photo, tags)
            position = album_dao.claim_next_position(album)
            album_dao.add_member(album_id, photo.id, position)
            await self.db.commit()
