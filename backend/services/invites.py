"""
Invite lifecycle: admins issue single-use invites; redeeming one creates a viewer account.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dao.invite_dao import InviteDAO
from dao.user_dao import UserDAO
from models.invite import Invite
from models.user import User, UserRole
from services.auth import get_password_hash
from services.exceptions import BadRequest, Conflict
from services.security import security_config, SecurityUtils, INVITE_TOKEN_BYTES

logger = logging.getLogger(__name__)

INVALID_INVITE = "Invalid or expired invite"

class InviteService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_invite(self, email: str, created_by: str, expires_at: Optional[datetime] = None) -> Invite:
        email = SecurityUtils.sanitize_email(email)
        if expires_at is None:
            expires_at = SecurityUtils.get_utc_now() + timedelta(days=security_config.invite_expires_days)
        else:
            expires_at = SecurityUtils.ensure_utc(expires_at)

        token = SecurityUtils.generate_token(INVITE_TOKEN_BYTES)
        try:
            invite = await InviteDAO(self.db).create_invite(email, token, expires_at, created_by)
        except IntegrityError:
            await self.db.rollback()
            logger.error("Invite token collision on insert")
            raise Conflict("Could not create invite")

        SecurityUtils.log_security_event(
            "invite_created",
            {"created_by": created_by, "token": SecurityUtils.mask_token(token)},
            user_email=email
        )
        return invite

    async def accept_invite(self, token: str, password: str, client_ip: str = None) -> User:
        """
        Redeem an unused, unexpired invite into a VIEWER account.
        The invite is marked used in the same transaction that creates the user.
        """
        invite = await InviteDAO(self.db).get_by_token(token)
        if not invite or invite.used_at is not None or SecurityUtils.is_expired(invite.expires_at):
            SecurityUtils.log_security_event(
                "invite_rejected", {"token": SecurityUtils.mask_token(token)}, client_ip=client_ip
            )
            raise BadRequest(INVALID_INVITE)

        if len(password) < security_config.password_min_length:
            raise BadRequest(f"Password must be at least {security_config.password_min_length} characters")

        user_dao = UserDAO(self.db)
        if await user_dao.get_by_email(invite.email):
            raise BadRequest("User already exists")

        user = User(email=invite.email, password_hash=get_password_hash(password), role=UserRole.VIEWER)
        invite.used_at = SecurityUtils.get_utc_now()
        try:
            user = await user_dao.create_user(user)
        except IntegrityError:
            await self.db.rollback()
            raise BadRequest("User already exists")

        SecurityUtils.log_security_event(
            "invite_accepted", {"user_id": user.id}, user_email=user.email, client_ip=client_ip
        )
        return user
