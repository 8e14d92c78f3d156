from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.session_dao import SessionDAO
from schemas.user import LoginRequest, UserOut
from services.auth import (
    SessionPrincipal, authenticate_user, create_session, get_session_principal,
    set_session_cookie, clear_session_cookie
)
from services.db import get_db
from services.exceptions import Unauthenticated
from services.rate_limiter import limit_requests
from services.security import security_config, SecurityUtils, SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/login",
    response_model=UserOut,
    dependencies=[limit_requests("login", security_config.rate_limit_login_per_minute)]
)
async def login(credentials: LoginRequest, request: Request, response: Response,
                db: AsyncSession = Depends(get_db)):
    """Exchange email and password for a session cookie."""
    client_ip = SecurityUtils.get_client_ip(request)
    user = await authenticate_user(db, credentials.email, credentials.password, client_ip=client_ip)
    if not user:
        # Same message for unknown email and wrong password
        raise Unauthenticated("Invalid credentials")

    token, _ = await create_session(db, user.id)
    set_session_cookie(response, token)
    return user

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request, db: AsyncSession = Depends(get_db)):
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        deleted = await SessionDAO(db).delete_by_token(token)
        if deleted:
            SecurityUtils.log_security_event(
                "logout", {"token": SecurityUtils.mask_token(token)},
                client_ip=SecurityUtils.get_client_ip(request)
            )

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response

@router.get("/me", response_model=UserOut)
async def me(principal: SessionPrincipal = Depends(get_session_principal)):
    return UserOut(id=principal.user_id, email=principal.email, role=principal.role)
