"""Quota ledger: per-account usage derived from non-trashed nodes."""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.timeutil import as_utc, utcnow
from ..exceptions import QuotaExceededError
from ..models import StorageStats
from ..repositories.node_repository import NodeRepository

logger = logging.getLogger(__name__)


class QuotaLedger:
    """Recomputes and serves storage snapshots.

    Snapshots are rebuilt from the node table every time; the stored row is
    a cache for overview(), never a running total.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.repo = NodeRepository(db)

    @property
    def quota_bytes(self) -> int:
        return self.settings.quota_bytes

    def recompute(self, owner_id: str) -> StorageStats:
        """Rebuild and persist the snapshot for one account."""
        used = 0
        files = 0
        folders = 0
        breakdown: dict[str, int] = {}
        for node in self.repo.owned_nodes(owner_id):
            if node.is_folder:
                folders += 1
                continue
            files += 1
            used += node.size or 0
            breakdown[node.type] = breakdown.get(node.type, 0) + (node.size or 0)

        stats = self.db.get(StorageStats, owner_id)
        if stats is None:
            stats = StorageStats(user_id=owner_id)
            self.db.add(stats)
        stats.used_storage = used
        stats.total_files = files
        stats.total_folders = folders
        stats.file_type_breakdown = breakdown
        stats.last_calculated = utcnow()
        self.db.commit()

        logger.debug(
            "Recomputed storage stats",
            extra={"owner_id": owner_id, "used": used, "files": files, "folders": folders},
        )
        return stats

    def used_bytes(self, owner_id: str) -> int:
        return self.repo.used_bytes(owner_id)

    def overview(self, owner_id: str) -> dict:
        """Snapshot plus quota and remaining bytes; stale snapshots are rebuilt."""
        stats = self.db.get(StorageStats, owner_id)
        ttl = timedelta(seconds=self.settings.quota_snapshot_ttl_seconds)
        if stats is None or as_utc(stats.last_calculated) < utcnow() - ttl:
            stats = self.recompute(owner_id)

        return {
            "used_storage": stats.used_storage,
            "total_files": stats.total_files,
            "total_folders": stats.total_folders,
            "file_type_breakdown": dict(stats.file_type_breakdown or {}),
            "last_calculated": as_utc(stats.last_calculated),
            "quota_bytes": self.quota_bytes,
            "remaining": max(0, self.quota_bytes - stats.used_storage),
        }

    def ensure_capacity(self, owner_id: str, incoming: int) -> None:
        """Raise QuotaExceededError when *incoming* more bytes would not fit."""
        used = self.used_bytes(owner_id)
        if used + incoming > self.quota_bytes:
            raise QuotaExceededError(used=used, incoming=incoming, quota=self.quota_bytes)
