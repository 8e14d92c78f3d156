from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union
from passlib.context import CryptContext
from fastapi import Depends, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from dao.session_dao import SessionDAO
from dao.share_link_dao import ShareLinkDAO
from dao.user_dao import UserDAO
from models.share_link import ShareResourceType
from models.user import User, UserRole
from services.db import get_db
from services.exceptions import Conflict, NotFound, Unauthenticated, INVALID_SHARE_LINK
from services.security import (
    security_config, SecurityUtils, SESSION_COOKIE_NAME, SESSION_TOKEN_BYTES
)
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Verified against for unknown emails so both login failure paths cost one bcrypt check
_DUMMY_PASSWORD_HASH = pwd_context.hash("dummy-password-for-timing")

@dataclass(frozen=True)
class SessionPrincipal:
    """A logged-in user. Resolved from the session cookie."""
    user_id: str
    role: UserRole
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

@dataclass(frozen=True)
class SharePrincipal:
    """An anonymous viewer holding a share link for exactly one resource."""
    resource_type: ShareResourceType
    resource_id: str

Principal = Union[SessionPrincipal, SharePrincipal]

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def get_password_hash(password: str) -> str:
    """Hash password using bcrypt."""
    return pwd_context.hash(password)

async def authenticate_user(db: AsyncSession, email: str, password: str, client_ip: str = None) -> User | None:
    """
    Check credentials with the same amount of hashing work whether or not
    the account exists.
    """
    email = SecurityUtils.sanitize_email(email)
    user = await UserDAO(db).get_by_email(email)

    if user is None:
        pwd_context.verify(password, _DUMMY_PASSWORD_HASH)
        SecurityUtils.log_security_event(
            "failed_login_user_not_found", {}, user_email=email, client_ip=client_ip
        )
        return None

    if not verify_password(password, user.password_hash):
        SecurityUtils.log_security_event(
            "failed_login_wrong_password", {"user_id": user.id}, user_email=email, client_ip=client_ip
        )
        return None

    SecurityUtils.log_security_event(
        "successful_login", {"user_id": user.id}, user_email=email, client_ip=client_ip
    )
    return user

async def create_session(db: AsyncSession, user_id: str) -> Tuple[str, datetime]:
    """
    Issue a fresh session token. Lifetime is fixed at creation; there is no
    sliding renewal. A token collision is fatal for this attempt.
    """
    token = SecurityUtils.generate_token(SESSION_TOKEN_BYTES)
    expires_at = SecurityUtils.get_utc_now() + timedelta(days=security_config.session_expires_days)

    try:
        await SessionDAO(db).create_session(user_id, token, expires_at)
    except IntegrityError:
        await db.rollback()
        logger.error("Session token collision on insert")
        raise Conflict("Could not create session")

    return token, expires_at

def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=security_config.session_expires_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=security_config.cookie_secure
    )

def clear_session_cookie(response: Response):
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=security_config.cookie_secure
    )

class PrincipalResolver:
    """
    Turns a raw credential into a Principal. Session and share credentials are
    resolved by separate methods because routes accept exactly one of them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_session(self, token: Optional[str], client_ip: str = None) -> SessionPrincipal:
        if not token:
            raise Unauthenticated()

        session_dao = SessionDAO(self.db)
        session = await session_dao.get_by_token(token)
        if session is None:
            SecurityUtils.log_security_event(
                "unknown_session_token", {"token": SecurityUtils.mask_token(token)}, client_ip=client_ip
            )
            raise Unauthenticated(clear_session_cookie=True)

        if SecurityUtils.is_expired(session.expires_at):
            # Prune on read. A concurrent reader may already have deleted the row.
            await session_dao.delete_by_token(token)
            SecurityUtils.log_security_event(
                "expired_session_pruned", {"user_id": session.user_id}, client_ip=client_ip
            )
            raise Unauthenticated("Session expired", clear_session_cookie=True)

        user = session.user
        if user is None:
            raise Unauthenticated(clear_session_cookie=True)

        return SessionPrincipal(user_id=user.id, role=user.role, email=user.email)

    async def resolve_share(self, token: Optional[str], client_ip: str = None) -> SharePrincipal:
        """Missing and expired links fail identically."""
        link = await ShareLinkDAO(self.db).get_by_token(token) if token else None

        if link is None or SecurityUtils.is_expired(link.expires_at):
            SecurityUtils.log_security_event(
                "share_link_rejected", {"token": SecurityUtils.mask_token(token)}, client_ip=client_ip
            )
            raise NotFound(INVALID_SHARE_LINK)

        return SharePrincipal(resource_type=link.resource_type, resource_id=link.resource_id)

async def get_session_principal(request: Request, db: AsyncSession = Depends(get_db)) -> SessionPrincipal:
    """Dependency for session routes: resolve the session cookie or fail 401."""
    return await PrincipalResolver(db).resolve_session(
        request.cookies.get(SESSION_COOKIE_NAME),
        client_ip=SecurityUtils.get_client_ip(request)
    )

async def get_share_principal(token: str, request: Request, db: AsyncSession = Depends(get_db)) -> SharePrincipal:
    """Dependency for share routes: resolve the path token or fail 404."""
    return await PrincipalResolver(db).resolve_share(
        token, client_ip=SecurityUtils.get_client_ip(request)
    )
