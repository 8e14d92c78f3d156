from typing import List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.photo import Tag

class TagDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_names(self) -> List[str]:
        result = await self.db.execute(select(Tag.name).order_by(Tag.name.asc()))
        return list(result.scalars().all())

    async def get_or_create_many(self, names: List[str]) -> List[Tag]:
        """
        Resolve tag names to rows, creating missing ones. Does not commit.
        A concurrent upload may create the same tag first; the savepoint lets
        us fall back to the row it wrote.
        """
        tags = []
        for name in names:
            result = await self.db.execute(select(Tag).where(Tag.name == name))
            tag = result.scalars().first()
            if tag is None:
                try:
                    async with self.db.begin_nested():
                        tag = Tag(name=name)
                        self.db.add(tag)
                except IntegrityError:
                    result = await self.db.execute(select(Tag).where(Tag.name == name))
                    tag = result.scalars().one()
            tags.append(tag)
        return tags
