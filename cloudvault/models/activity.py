"""Activity model: append-only log of what happened to which node."""

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String

from ..core.timeutil import utcnow
from ..database import Base

ACTIVITY_TYPES = frozenset({
    "upload", "upload_skipped_duplicate", "download", "download_public",
    "share", "share_link", "rename", "move", "copy", "delete", "restore",
    "create_folder", "permanent_delete", "empty_trash", "relink",
})


class Activity(Base):
    """Immutable activity entry.

    file_id is not a foreign key: entries outlive the nodes they describe.
    user_id is NULL for downloads through a public link.
    """

    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_user_created", "user_id", "created_at"),
        Index("ix_activities_file_id", "file_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(40), nullable=False)
    file_id = Column(String(32), nullable=True)
    file_name = Column(String(255), nullable=True)
    user_id = Column(String(50), nullable=True)
    target_user_id = Column(String(50), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
