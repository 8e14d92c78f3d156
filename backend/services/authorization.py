"""
Scope authorization for gallery resources and the FastAPI dependencies that enforce it.
Every decision is made against the current database state; nothing is cached.
"""
from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.album_dao import AlbumDAO
from models.share_link import ShareResourceType
from services.auth import (
    Principal, SessionPrincipal, SharePrincipal, get_session_principal, get_share_principal
)
from services.db import get_db
from services.exceptions import Forbidden
from services.security import SecurityUtils
from schemas.rbac import ResourceType, ActionType, AuthorizationResult

logger = logging.getLogger(__name__)

class ScopeAuthorizer:
    """
    Decides whether a principal may perform an action on one resource.
    Unrecognized principals and actions are denied.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authorize(self, principal: Principal, kind: ResourceType, resource_id: Optional[str],
                        action: ActionType = ActionType.READ) -> AuthorizationResult:
        if isinstance(principal, SessionPrincipal):
            return self._authorize_session(principal, action)
        if isinstance(principal, SharePrincipal):
            return await self._authorize_share(principal, kind, resource_id, action)
        return AuthorizationResult.deny("Unknown principal")

    def _authorize_session(self, principal: SessionPrincipal, action: ActionType) -> AuthorizationResult:
        if action == ActionType.READ:
            return AuthorizationResult.allow()
        if action in (ActionType.CREATE, ActionType.SHARE, ActionType.INVITE):
            if principal.is_admin:
                return AuthorizationResult.allow()
            return AuthorizationResult.deny("Admin role required")
        return AuthorizationResult.deny("Unsupported action")

    async def _authorize_share(self, principal: SharePrincipal, kind: ResourceType,
                               resource_id: Optional[str], action: ActionType) -> AuthorizationResult:
        if action != ActionType.READ:
            return AuthorizationResult.deny("Share links are read-only")
        if not resource_id:
            return AuthorizationResult.deny("Outside share scope")

        if principal.resource_type == ShareResourceType.PHOTO:
            if kind == ResourceType.PHOTO and resource_id == principal.resource_id:
                return AuthorizationResult.allow()
            return AuthorizationResult.deny("Outside share scope")

        if principal.resource_type == ShareResourceType.ALBUM:
            if kind == ResourceType.ALBUM and resource_id == principal.resource_id:
                return AuthorizationResult.allow()
            if kind == ResourceType.PHOTO and await AlbumDAO(self.db).is_member(principal.resource_id, resource_id):
                return AuthorizationResult.allow()
            return AuthorizationResult.deny("Outside share scope")

        return AuthorizationResult.deny("Unknown share scope")

    async def require(self, principal: Principal, kind: ResourceType, resource_id: Optional[str],
                      action: ActionType = ActionType.READ, client_ip: str = None):
        """Raise Forbidden unless authorize() allows."""
        result = await self.authorize(principal, kind, resource_id, action)
        if not result.authorized:
            SecurityUtils.log_security_event(
                "authorization_denied",
                {
                    "principal": type(principal).__name__,
                    "resource": kind.value,
                    "resource_id": resource_id,
                    "action": action.value,
                    "reason": result.reason
                },
                user_email=getattr(principal, "email", None),
                client_ip=client_ip
            )
            raise Forbidden()

def require_action(action: ActionType, kind: ResourceType = ResourceType.PHOTO):
    """
    Dependency factory for session routes gated on a mutation.

    Usage:
        @router.post("/albums")
        async def create_album(principal: SessionPrincipal = require_action(ActionType.CREATE, ResourceType.ALBUM)):
            ...
    """
    async def action_checker(request: Request,
                             principal: SessionPrincipal = Depends(get_session_principal),
                             db: AsyncSession = Depends(get_db)) -> SessionPrincipal:
        await ScopeAuthorizer(db).require(
            principal, kind, None, action, client_ip=SecurityUtils.get_client_ip(request)
        )
        return principal

    return Depends(action_checker)

async def authorize_share_read(principal: SharePrincipal, kind: ResourceType, resource_id: str,
                               db: AsyncSession, request: Request = None):
    """Scope check for share routes."""
    client_ip = SecurityUtils.get_client_ip(request) if request is not None else None
    await ScopeAuthorizer(db).require(principal, kind, resource_id, ActionType.READ, client_ip=client_ip)

__all__ = [
    "ScopeAuthorizer",
    "require_action",
    "authorize_share_read",
    "get_session_principal",
    "get_share_principal",
]
