from typing import Optional, Union
from datetime import datetime
from uuid import UUID

from models.share_link import ShareResourceType
from schemas.photo import AlbumDetail, PhotoDetail
from schemas.user import ApiModel

class ShareLinkCreate(ApiModel):
    resource_type: ShareResourceType
    resource_id: UUID
    expires_at: Optional[datetime] = None

class ShareLinkResponse(ApiModel):
    token: str
    expires_at: datetime

class ShareResponse(ApiModel):
    """Landing payload for a share link: one photo, or one album with its photos."""
    resource_type: ShareResourceType
    resource: Union[PhotoDetail, AlbumDetail]
