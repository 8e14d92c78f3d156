"""
Access-control schemas shared by the scope authorizer and its route dependencies.
"""
from pydantic import BaseModel
from typing import Optional
from enum import Enum

class ResourceType(str, Enum):
    """Resource kinds an access decision can be about."""
    PHOTO = "photo"
    ALBUM = "album"

class ActionType(str, Enum):
    """Actions checked by the scope authorizer."""
    READ = "read"
    CREATE = "create"     # album creation, photo upload
    SHARE = "share"       # share-link issuance
    INVITE = "invite"     # invite issuance

class AuthorizationResult(BaseModel):
    """Result of authorization check."""
    authorized: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "AuthorizationResult":
        return cls(authorized=True)

    @classmethod
    def deny(cls, reason: str) -> "AuthorizationResult":
        return cls(authorized=False, reason=reason)
