from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dao.tag_dao import TagDAO
from schemas.photo import TagListResponse
from services.auth import SessionPrincipal, get_session_principal
from services.db import get_db

router = APIRouter()

@router.get("/tags", response_model=TagListResponse)
async def list_tags(
    principal: SessionPrincipal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db)
):
    # Alphabetical so filter chips keep a stable order
    return TagListResponse(items=await TagDAO(db).list_names())
