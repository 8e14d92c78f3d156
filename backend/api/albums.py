from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dao.album_dao import AlbumDAO
from models.photo import Album
from schemas.photo import AlbumCreate, AlbumDetail, AlbumListItem, AlbumListResponse, AlbumOut
from schemas.rbac import ResourceType, ActionType
from services.auth import SessionPrincipal, get_session_principal
from services.authorization import require_action
from services.db import get_db
from services.exceptions import NotFound
from services.media import build_media_url
from services.share_links import album_detail

router = APIRouter()

@router.post("/albums", response_model=AlbumOut, status_code=status.HTTP_201_CREATED)
async def create_album(
    album_in: AlbumCreate,
    principal: SessionPrincipal = require_action(ActionType.CREATE, ResourceType.ALBUM),
    db: AsyncSession = Depends(get_db)
):
    album = Album(title=album_in.title, description=album_in.description)
    return await AlbumDAO(db).create_album(album)

@router.get("/albums", response_model=AlbumListResponse)
async def list_albums(
    principal: SessionPrincipal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db)
):
    """Newest first; the cover is the photo at the lowest position."""
    album_dao = AlbumDAO(db)
    albums = await album_dao.list_albums()
    covers = await album_dao.get_cover_photo_ids()

    items = []
    for album in albums:
        cover_id = covers.get(album.id)
        items.append(AlbumListItem(
            id=album.id,
            title=album.title,
            description=album.description,
            created_at=album.created_at,
            cover_photo_id=cover_id,
            cover_url=build_media_url("320", cover_id) if cover_id else None
        ))
    return AlbumListResponse(items=items)

@router.get("/albums/{album_id}", response_model=AlbumDetail)
async def get_album(
    album_id: str,
    principal: SessionPrincipal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db)
):
    album = await AlbumDAO(db).get_with_photos(album_id)
    if not album:
        raise NotFound()
    return album_detail(album)
