"""
Pydantic schemas for photos, albums and tags.
Media URLs are always API routes; storage keys never appear in responses.
"""
from pydantic import Field, field_validator
from typing import List, Optional, Dict
from datetime import datetime

from schemas.user import ApiModel

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000

class PhotoUploadResponse(ApiModel):
    id: str
    title: str
    created_at: datetime

class PhotoListItem(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    created_at: datetime
    thumb_url: str
    tags: List[str] = []

class PhotoListResponse(ApiModel):
    page: int
    total: int
    items: List[PhotoListItem]

class PhotoDetail(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    created_at: datetime
    width: int
    height: int
    tags: List[str] = []
    # Size label -> media URL
    sizes: Dict[str, str]

class AlbumCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)

    @field_validator('title')
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Album title cannot be empty")
        return v

class AlbumOut(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    created_at: datetime

class AlbumListItem(AlbumOut):
    cover_photo_id: Optional[str] = None
    cover_url: Optional[str] = None

class AlbumListResponse(ApiModel):
    items: List[AlbumListItem]

class AlbumDetail(AlbumOut):
    photos: List[PhotoListItem]

class TagListResponse(ApiModel):
    items: List[str]
