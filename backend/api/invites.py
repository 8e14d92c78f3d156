from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from schemas.invite import InviteAccept, InviteAcceptResponse, InviteCreate, InviteResponse
from schemas.rbac import ActionType
from services.auth import SessionPrincipal, create_session, set_session_cookie
from services.authorization import require_action
from services.db import get_db
from services.email import InviteMailer, deliver_invite, get_invite_mailer
from services.invites import InviteService
from services.rate_limiter import limit_requests
from services.security import security_config, SecurityUtils

router = APIRouter()

@router.post(
    "/invites",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[limit_requests("invites", security_config.rate_limit_invites_per_minute)]
)
async def create_invite(
    invite_in: InviteCreate,
    background_tasks: BackgroundTasks,
    principal: SessionPrincipal = require_action(ActionType.INVITE),
    db: AsyncSession = Depends(get_db),
    mailer: InviteMailer = Depends(get_invite_mailer)
):
    """Issue an invite; the email goes out after the response is sent."""
    invite = await InviteService(db).create_invite(invite_in.email, principal.user_id, invite_in.expires_at)
    background_tasks.add_task(deliver_invite, mailer, invite.email, invite.token)
    return invite

@router.post("/invites/accept", response_model=InviteAcceptResponse, status_code=status.HTTP_201_CREATED)
async def accept_invite(
    accept_in: InviteAccept,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Redeem an invite and sign the new viewer in."""
    user = await InviteService(db).accept_invite(
        accept_in.token, accept_in.password, client_ip=SecurityUtils.get_client_ip(request)
    )
    token, _ = await create_session(db, user.id)
    set_session_cookie(response, token)
    return user
