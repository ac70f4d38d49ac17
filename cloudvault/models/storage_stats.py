"""Per-account storage snapshot."""

from sqlalchemy import BigInteger, Column, DateTime, Integer, JSON, String

from ..core.timeutil import utcnow
from ..database import Base


class StorageStats(Base):
    """Quota snapshot derived from an account's non-trashed nodes.

    Always rebuilt from scratch by QuotaLedger.recompute(); never adjusted
    incrementally.
    """

    __tablename__ = "storage_stats"

    user_id = Column(String(50), primary_key=True)
    used_storage = Column(BigInteger, nullable=False, default=0)
    total_files = Column(Integer, nullable=False, default=0)
    total_folders = Column(Integer, nullable=False, default=0)
    file_type_breakdown = Column(JSON, nullable=False, default=dict)  # type -> bytes
    last_calculated = Column(DateTime(timezone=True), nullable=False, default=utcnow)
