"""
Photo upload, listing, detail and session-authenticated media delivery.
"""
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from dao.photo_dao import PhotoDAO
from schemas.photo import PhotoDetail, PhotoListResponse, PhotoUploadResponse
from schemas.rbac import ResourceType, ActionType
from services.auth import SessionPrincipal, get_session_principal
from services.authorization import ScopeAuthorizer, require_action
from services.db import get_db
from services.exceptions import BadRequest, NotFound
from services.file_storage import MediaStore, get_media_store
from services.media import MediaLocator, media_response
from services.security import SecurityUtils
from services.share_links import photo_detail, photo_list_item
from services.upload import UploadInput, UploadService, parse_visibility

router = APIRouter()

@router.post("/photos", response_model=PhotoUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    request: Request,
    file: Optional[List[UploadFile]] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[List[str]] = Form(None),
    album_id: Optional[str] = Form(None, alias="albumId"),
    visibility: Optional[str] = Form(None),
    principal: SessionPrincipal = require_action(ActionType.CREATE, ResourceType.PHOTO),
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store)
):
    """
    Multipart upload of exactly one image.

    Tags may be comma-joined and/or repeated; visibility is "shared" or
    anything else for private.
    """
    if not file:
        raise BadRequest("File is required")
    if len(file) > 1:
        raise BadRequest("Exactly one file per upload")

    upload_file = file[0]
    upload = UploadInput(
        data=await upload_file.read(),
        filename=upload_file.filename or "",
        mimetype=upload_file.content_type or "",
        title=title,
        description=description,
        tags=tags or [],
        album_id=album_id or None,
        visibility=parse_visibility(visibility)
    )

    photo = await UploadService(db, store).upload_photo(upload)

    SecurityUtils.log_security_event(
        "photo_uploaded",
        {"photo_id": photo.id, "album_id": upload.album_id, "bytes": len(upload.data)},
        user_email=principal.email,
        client_ip=SecurityUtils.get_client_ip(request)
    )
    return photo

@router.get("/photos", response_model=PhotoListResponse)
async def list_photos(
    page: int = Query(1, ge=1),
    limit: int = Query(24, ge=1, le=100),
    tag: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    album_id: Optional[str] = Query(None, alias="albumId"),
    principal: SessionPrincipal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db)
):
    items, total = await PhotoDAO(db).list_photos(page, limit, tag=tag, q=q, album_id=album_id)
    return PhotoListResponse(
        page=page,
        total=total,
        items=[photo_list_item(photo) for photo in items]
    )

@router.get("/photos/{photo_id}", response_model=PhotoDetail)
async def get_photo(
    photo_id: str,
    principal: SessionPrincipal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db)
):
    await ScopeAuthorizer(db).require(principal, ResourceType.PHOTO, photo_id)
    photo = await PhotoDAO(db).get_with_tags(photo_id)
    if not photo:
        raise NotFound()
    return photo_detail(photo)

@router.get("/media/{size}/{photo_id}")
async def get_media(
    size: str,
    photo_id: str,
    principal: SessionPrincipal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store)
):
    """Authorize, then hand the file to the delegated responder. No bytes pass through here in x-accel mode."""
    await ScopeAuthorizer(db).require(principal, ResourceType.PHOTO, photo_id)
    location = await MediaLocator(db).locate(size, photo_id)
    return media_response(location, store)
