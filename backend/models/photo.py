"""
Gallery content models: photos, albums with ordered membership, and tags.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Table, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from enum import Enum
import uuid
from services.db import Base

# Association table for many-to-many relationship between photos and tags
photo_tags = Table(
    'photo_tags',
    Base.metadata,
    Column('photo_id', String(36), ForeignKey('photos.id', ondelete="CASCADE"), primary_key=True),
    Column('tag_id', Integer, ForeignKey('tags.id', ondelete="CASCADE"), primary_key=True)
)

class Visibility(Enum):
    """Photo visibility flag recorded at upload."""
    PRIVATE = "private"
    SHARED = "shared"

class Photo(Base):
    """
    An uploaded photo. storage_key is the basename shared by every derived
    resolution; width, height and sizes_json are fixed once written.
    """
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)

    # Geometry after orientation normalization
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)

    storage_key = Column(String(64), unique=True, nullable=False)
    visibility = Column(SQLEnum(Visibility), default=Visibility.PRIVATE, nullable=False)
    sizes_json = Column(JSON, nullable=False)  # size label -> relative media path

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    tags = relationship("Tag", secondary=photo_tags, back_populates="photos")
    album_entries = relationship("AlbumPhoto", back_populates="photo", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Photo(id={self.id}, storage_key='{self.storage_key}')>"

    @property
    def content_type(self):
        return "image/png" if self.storage_key.endswith(".png") else "image/jpeg"

class Album(Base):
    __tablename__ = "albums"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    # Highest position ever assigned; survives member removal
    last_position = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    entries = relationship(
        "AlbumPhoto",
        back_populates="album",
        order_by="AlbumPhoto.position",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Album(id={self.id}, title='{self.title}')>"

class AlbumPhoto(Base):
    """
    Ordered album membership. Positions are 1-based, taken from the
    album's last_position counter, never reused and never renumbered.
    """
    __tablename__ = "album_photos"

    album_id = Column(String(36), ForeignKey('albums.id', ondelete="CASCADE"), primary_key=True)
    photo_id = Column(String(36), ForeignKey('photos.id', ondelete="CASCADE"), primary_key=True)
    position = Column(Integer, nullable=False)
    added_at = Column(DateTime(timezone=True), server_default=func.now())

    album = relationship("Album", back_populates="entries")
    photo = relationship("Photo", back_populates="album_entries")

    __table_args__ = (
        UniqueConstraint('album_id', 'position', name='uq_album_photos_position'),
    )

    def __repr__(self):
        return f"<AlbumPhoto(album_id={self.album_id}, photo_id={self.photo_id}, position={self.position})>"

class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)

    photos = relationship("Photo", secondary=photo_tags, back_populates="tags")

    def __repr__(self):
        return f"<Tag(name='{self.name}')>"
