from typing import List, Optional, Tuple
from sqlalchemy import desc, func, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.photo import Photo, Tag, AlbumPhoto

class PhotoDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, photo_id: str) -> Optional[Photo]:
        return await self.db.get(Photo, photo_id)

    async def get_with_tags(self, photo_id: str) -> Optional[Photo]:
        result = await self.db.execute(
            select(Photo).options(selectinload(Photo.tags)).where(Photo.id == photo_id)
        )
        return result.scalars().first()

    async def list_photos(self, page: int, limit: int, tag: Optional[str] = None,
                          q: Optional[str] = None, album_id: Optional[str] = None) -> Tuple[List[Photo], int]:
        """Return one page of photos, newest first, with the total match count."""
        query = select(Photo)
        if q:
            pattern = f"%{q}%"
            query = query.where(or_(Photo.title.ilike(pattern), Photo.description.ilike(pattern)))
        if tag:
            query = query.where(Photo.tags.any(Tag.name == tag.lower()))
        if album_id:
            query = query.where(Photo.album_entries.any(AlbumPhoto.album_id == album_id))

        total_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await self.db.execute(
            query.options(selectinload(Photo.tags))
            .order_by(desc(Photo.created_at), Photo.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    def add_photo(self, photo: Photo, tags: List[Tag]) -> Photo:
        """Stage a photo with its tags; the caller owns the commit."""
        photo.tags = tags
        self.db.add(photo)
        return photo
