from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Index
from sqlalchemy.sql import func
from enum import Enum
from services.db import Base

class ShareResourceType(Enum):
    """The two resource kinds a share link may point at."""
    PHOTO = "photo"
    ALBUM = "album"

class ShareLink(Base):
    """
    Time-boxed, unauthenticated access to exactly one photo or album.
    resource_id is not a foreign key: a link may outlive its target, and
    lookups for a vanished target simply return not found.
    """
    __tablename__ = "share_links"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    resource_type = Column(SQLEnum(ShareResourceType), nullable=False)
    resource_id = Column(String(36), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_share_links_resource', 'resource_type', 'resource_id'),
    )

    def __repr__(self):
        return f"<ShareLink(resource_type={self.resource_type}, resource_id='{self.resource_id}')>"
