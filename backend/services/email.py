"""
Invite email delivery through the SendGrid v3 mail API.
Without an API key configured, the invite link is logged instead of sent.
"""
from typing import Optional
import logging

import httpx

from services.security import security_config, SecurityUtils

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"

class InviteMailer:
    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None,
                 app_url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.api_key = security_config.sendgrid_api_key if api_key is None else api_key
        self.sender = sender or security_config.email_from
        self.app_url = (app_url or security_config.app_url).rstrip("/")
        self.http_client = http_client

    def invite_url(self, token: str) -> str:
        return f"{self.app_url}/invite/accept?token={token}"

    def build_message(self, to: str, token: str) -> dict:
        invite_url = self.invite_url(token)
        return {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender},
            "subject": "You are invited to PhotoApp",
            "content": [
                {
                    "type": "text/plain",
                    "value": f"You have been invited to view photos. Accept your invite here: {invite_url}"
                },
                {
                    "type": "text/html",
                    "value": (
                        "<p>You have been invited to view photos.</p>"
                        f'<p><a href="{invite_url}">Accept your invite</a></p>'
                    )
                }
            ]
        }

    async def send_invite(self, to: str, token: str):
        """Send one invite email. Raises httpx.HTTPError on delivery failure."""
        if not self.api_key:
            logger.info(f"Email delivery disabled; invite link for {to}: {self.invite_url(token)}")
            return

        client = self.http_client or httpx.AsyncClient()
        try:
            response = await client.post(
                SENDGRID_SEND_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=self.build_message(to, token),
                timeout=15
            )
            response.raise_for_status()
        finally:
            if self.http_client is None:
                await client.aclose()

        logger.info(f"Invite email sent to {to}")

async def deliver_invite(mailer: InviteMailer, to: str, token: str):
    """Background-task entry point: failures are logged and not retried."""
    try:
        await mailer.send_invite(to, token)
    except httpx.HTTPError as e:
        SecurityUtils.log_security_event(
            "invite_email_failed", {"error": str(e), "token": SecurityUtils.mask_token(token)}, user_email=to
        )
        logger.error(f"Failed to send invite email to {to}: {e}")

def get_invite_mailer() -> InviteMailer:
    """FastAPI dependency; tests override it."""
    return InviteMailer()
