"""
Share link issuance and the share landing payload.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dao.album_dao import AlbumDAO
from dao.photo_dao import PhotoDAO
from dao.share_link_dao import ShareLinkDAO
from models.share_link import ShareLink, ShareResourceType
from models.photo import Album, Photo
from schemas.photo import AlbumDetail, PhotoDetail, PhotoListItem
from schemas.share import ShareResponse
from services.auth import SharePrincipal
from services.exceptions import Conflict, NotFound
from services.media import build_media_url, build_size_urls
from services.security import security_config, SecurityUtils, SHARE_TOKEN_BYTES

logger = logging.getLogger(__name__)

def photo_list_item(photo: Photo, share_token: Optional[str] = None) -> PhotoListItem:
    return PhotoListItem(
        id=photo.id,
        title=photo.title,
        description=photo.description,
        created_at=photo.created_at,
        thumb_url=build_media_url("320", photo.id, share_token),
        tags=[tag.name for tag in photo.tags]
    )

def photo_detail(photo: Photo, share_token: Optional[str] = None) -> PhotoDetail:
    return PhotoDetail(
        id=photo.id,
        title=photo.title,
        description=photo.description,
        created_at=photo.created_at,
        width=photo.width,
        height=photo.height,
        tags=[tag.name for tag in photo.tags],
        sizes=build_size_urls(photo.id, share_token)
    )

def album_detail(album: Album, share_token: Optional[str] = None) -> AlbumDetail:
    return AlbumDetail(
        id=album.id,
        title=album.title,
        description=album.description,
        created_at=album.created_at,
        photos=[photo_list_item(entry.photo, share_token) for entry in album.entries]
    )

class ShareLinkService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_link(self, resource_type: ShareResourceType, resource_id: str,
                          expires_at: Optional[datetime] = None) -> ShareLink:
        """Issue a link for an existing photo or album. Default lifetime is SHARE_EXPIRES_HOURS."""
        if resource_type == ShareResourceType.PHOTO:
            target = await PhotoDAO(self.db).get_by_id(resource_id)
        else:
            target = await AlbumDAO(self.db).get_by_id(resource_id)
        if not target:
            raise NotFound()

        if expires_at is None:
            expires_at = SecurityUtils.get_utc_now() + timedelta(hours=security_config.share_expires_hours)
        else:
            expires_at = SecurityUtils.ensure_utc(expires_at)

        token = SecurityUtils.generate_token(SHARE_TOKEN_BYTES)
        try:
            link = await ShareLinkDAO(self.db).create_link(token, resource_type, resource_id, expires_at)
        except IntegrityError:
            await self.db.rollback()
            logger.error("Share token collision on insert")
            raise Conflict("Could not create share link")

        SecurityUtils.log_security_event(
            "share_link_created",
            {
                "resource_type": resource_type.value,
                "resource_id": resource_id,
                "token": SecurityUtils.mask_token(token),
                "expires_at": expires_at.isoformat()
            }
        )
        return link

    async def landing(self, principal: SharePrincipal, token: str) -> ShareResponse:
        """Payload for the shared resource with media URLs scoped to the same token."""
        if principal.resource_type == ShareResourceType.PHOTO:
            photo = await PhotoDAO(self.db).get_with_tags(principal.resource_id)
            if not photo:
                raise NotFound()
            return ShareResponse(resource_type=ShareResourceType.PHOTO, resource=photo_detail(photo, token))

        album = await AlbumDAO(self.db).get_with_photos(principal.resource_id)
        if not album:
            raise NotFound()
        return ShareResponse(resource_type=ShareResourceType.ALBUM, resource=album_detail(album, token))
