from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from schemas.user import ApiModel

class InviteCreate(ApiModel):
    email: EmailStr
    expires_at: Optional[datetime] = None

class InviteResponse(ApiModel):
    id: str
    email: EmailStr
    token: str
    expires_at: datetime

class InviteAccept(ApiModel):
    token: str = Field(..., min_length=10)
    password: str = Field(..., min_length=6)

class InviteAcceptResponse(ApiModel):
    id: str
    email: EmailStr
