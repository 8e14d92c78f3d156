from datetime import datetime
from sqlalchemy import delete
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.session import UserSession

class SessionDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_session(self, user_id: str, token: str, expires_at: datetime):
        record = UserSession(user_id=user_id, token=token, expires_at=expires_at)
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def get_by_token(self, token: str):
        result = await self.db.execute(
            select(UserSession)
            .options(selectinload(UserSession.user))
            .where(UserSession.token == token)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def delete_by_token(self, token: str) -> int:
        """Delete by token. Deleting a row that is already gone is a no-op."""
        result = await self.db.execute(delete(UserSession).where(UserSession.token == token))
        await self.db.commit()
        return result.rowcount or 0
