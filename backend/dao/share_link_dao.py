from datetime import datetime
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.share_link import ShareLink, ShareResourceType

class ShareLinkDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_link(self, token: str, resource_type: ShareResourceType,
                          resource_id: str, expires_at: datetime):
        record = ShareLink(
            token=token,
            resource_type=resource_type,
            resource_id=resource_id,
            expires_at=expires_at
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def get_by_token(self, token: str):
        result = await self.db.execute(select(ShareLink).where(ShareLink.token == token))
        return result.scalars().first()
