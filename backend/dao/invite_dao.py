from datetime import datetime
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.invite import Invite

class InviteDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_invite(self, email: str, token: str, expires_at: datetime, created_by: str):
        record = Invite(email=email, token=token, expires_at=expires_at, created_by=created_by)
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def get_by_token(self, token: str):
        result = await self.db.execute(select(Invite).where(Invite.token == token))
        return result.scalars().first()
