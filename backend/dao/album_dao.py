import asyncio
import weakref
from typing import Dict, Optional
from sqlalchemy import and_, delete, desc, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.photo import Album, AlbumPhoto, Photo

# In-process half of the per-album append critical section. Locks vanish once
# no coroutine holds them.
_append_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

def album_append_lock(album_id: str) -> asyncio.Lock:
    lock = _append_locks.get(album_id)
    if lock is None:
        lock = asyncio.Lock()
        _append_locks[album_id] = lock
    return lock

class AlbumDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_album(self, album: Album):
        self.db.add(album)
        await self.db.commit()
        await self.db.refresh(album)
        return album

    async def get_by_id(self, album_id: str) -> Optional[Album]:
        return await self.db.get(Album, album_id)

    async def get_for_update(self, album_id: str) -> Optional[Album]:
        """Row-lock the album for the rest of the transaction (no-op on SQLite)."""
        result = await self.db.execute(
            select(Album)
            .where(Album.id == album_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_with_photos(self, album_id: str) -> Optional[Album]:
        result = await self.db.execute(
            select(Album)
            .options(
                selectinload(Album.entries)
                .selectinload(AlbumPhoto.photo)
                .selectinload(Photo.tags)
            )
            .where(Album.id == album_id)
        )
        return result.scalars().first()

    async def list_albums(self):
        result = await self.db.execute(select(Album).order_by(desc(Album.created_at)))
        return list(result.scalars().all())

    async def get_cover_photo_ids(self) -> Dict[str, str]:
        """Map album id to the photo at its lowest position."""
        first_positions = (
            select(
                AlbumPhoto.album_id,
                func.min(AlbumPhoto.position).label("position")
            )
            .group_by(AlbumPhoto.album_id)
            .subquery()
        )
        result = await self.db.execute(
            select(AlbumPhoto.album_id, AlbumPhoto.photo_id).join(
                first_positions,
                and_(
                    AlbumPhoto.album_id == first_positions.c.album_id,
                    AlbumPhoto.position == first_positions.c.position
                )
            )
        )
        return {album_id: photo_id for album_id, photo_id in result.all()}

    def claim_next_position(self, album: Album) -> int:
        """Advance the album counter. Call on a row from get_for_update, inside the append lock."""
        album.last_position = (album.last_position or 0) + 1
        return album.last_position

    async def is_member(self, album_id: str, photo_id: str) -> bool:
        """Membership is read from the database on every call."""
        result = await self.db.execute(
            select(AlbumPhoto.photo_id).where(
                and_(AlbumPhoto.album_id == album_id, AlbumPhoto.photo_id == photo_id)
            )
        )
        return result.first() is not None

    def add_member(self, album_id: str, photo_id: str, position: int) -> AlbumPhoto:
        """Stage a membership row; the caller commits inside its critical section."""
        entry = AlbumPhoto(album_id=album_id, photo_id=photo_id, position=position)
        self.db.add(entry)
        return entry

    async def remove_member(self, album_id: str, photo_id: str) -> bool:
        """Remove a membership row. Remaining positions are left as they are."""
        result = await self.db.execute(
            delete(AlbumPhoto).where(
                and_(AlbumPhoto.album_id == album_id, AlbumPhoto.photo_id == photo_id)
            )
        )
        await self.db.commit()
        return bool(result.rowcount)
