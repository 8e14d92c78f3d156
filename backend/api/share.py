"""
Share link issuance (admin sessions) and token-scoped public read access.
Share routes never consult the session cookie.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from schemas.rbac import ResourceType, ActionType
from schemas.share import ShareLinkCreate, ShareLinkResponse, ShareResponse
from services.auth import PrincipalResolver, SessionPrincipal, SharePrincipal, get_share_principal
from services.authorization import authorize_share_read, require_action
from services.db import get_db
from services.file_storage import MediaStore, get_media_store
from services.media import MediaLocator, media_response, normalize_size
from services.rate_limiter import limit_requests
from services.security import security_config, SecurityUtils
from services.share_links import ShareLinkService

router = APIRouter()

share_rate_limit = limit_requests("share", security_config.rate_limit_share_per_minute)

@router.post("/share-links", response_model=ShareLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_share_link(
    link_in: ShareLinkCreate,
    principal: SessionPrincipal = require_action(ActionType.SHARE),
    db: AsyncSession = Depends(get_db)
):
    return await ShareLinkService(db).create_link(
        link_in.resource_type, str(link_in.resource_id), link_in.expires_at
    )

@router.get("/share/{token}", response_model=ShareResponse, dependencies=[share_rate_limit])
async def get_shared_resource(
    token: str,
    request: Request,
    principal: SharePrincipal = Depends(get_share_principal),
    db: AsyncSession = Depends(get_db)
):
    kind = ResourceType(principal.resource_type.value)
    await authorize_share_read(principal, kind, principal.resource_id, db, request)
    return await ShareLinkService(db).landing(principal, token)

@router.get("/share/{token}/media/{size}/{photo_id}", dependencies=[share_rate_limit])
async def get_shared_media(
    token: str,
    size: str,
    photo_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: MediaStore = Depends(get_media_store)
):
    """Checks run in order: size, token, scope, photo. Each failure stops the request."""
    normalize_size(size)
    principal = await PrincipalResolver(db).resolve_share(
        token, client_ip=SecurityUtils.get_client_ip(request)
    )
    await authorize_share_read(principal, ResourceType.PHOTO, photo_id, db, request)
    location = await MediaLocator(db).locate(size, photo_id)
    return media_response(location, store)
