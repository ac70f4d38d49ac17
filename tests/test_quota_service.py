"""Tests for QuotaLedger snapshots and capacity checks."""

from datetime import timedelta

import pytest

from cloudvault.core.config import Settings
from cloudvault.exceptions import QuotaExceededError
from cloudvault.models import StorageStats
from cloudvault.services.hierarchy_service import HierarchyService
from cloudvault.services.quota_service import QuotaLedger
from cloudvault.services.upload_service import UploadCoordinator
from tests.conftest import payload


class TestRecompute:

    def test_sums_non_trashed_files(self, db, store):
        coordinator = UploadCoordinator(db, store)
        for name, size in (("a.txt", 100), ("b.txt", 200), ("c.pdf", 300)):
            coordinator.upload("alice", payload(size), name)

        stats = QuotaLedger(db).recompute("alice")
        assert stats.used_storage == 600
        assert stats.total_files == 3
        assert stats.total_folders == 0
        assert stats.file_type_breakdown == {"text": 300, "pdf": 300}

    def test_trash_and_restore_round_trip(self, db, store):
        svc = HierarchyService(db, store)
        ledger = QuotaLedger(db)
        node = UploadCoordinator(db, store).upload("alice", payload(100), "a.txt").node
        baseline = ledger.recompute("alice").used_storage

        svc.trash("alice", node.id)
        assert ledger.recompute("alice").used_storage == baseline - 100
        svc.restore("alice", node.id)
        assert ledger.recompute("alice").used_storage == baseline

    def test_accounts_are_independent(self, db, store):
        coordinator = UploadCoordinator(db, store)
        coordinator.upload("alice", payload(100), "a.txt")
        coordinator.upload("bob", payload(7), "b.txt")
        assert QuotaLedger(db).recompute("bob").used_storage == 7


class TestOverview:

    def test_overview_includes_quota_and_remaining(self, db, store):
        UploadCoordinator(db, store).upload("alice", payload(100), "a.txt")
        overview = QuotaLedger(db, Settings(quota_bytes=1000)).overview("alice")
        assert overview["used_storage"] == 100
        assert overview["quota_bytes"] == 1000
        assert overview["remaining"] == 900

    def test_overview_for_new_account(self, db):
        overview = QuotaLedger(db).overview("nobody")
        assert overview["used_storage"] == 0
        assert overview["total_files"] == 0
        assert db.get(StorageStats, "nobody") is not None

    def test_stale_snapshot_recomputed(self, db, store):
        ledger = QuotaLedger(db)
        stats = ledger.recompute("alice")
        stats.used_storage = 12345
        stats.last_calculated = stats.last_calculated - timedelta(hours=1)
        db.commit()
        assert ledger.overview("alice")["used_storage"] == 0


class TestEnsureCapacity:

    def test_within_quota(self, db):
        QuotaLedger(db, Settings(quota_bytes=10)).ensure_capacity("alice", 10)

    def test_over_quota(self, db):
        with pytest.raises(QuotaExceededError) as exc_info:
            QuotaLedger(db, Settings(quota_bytes=10)).ensure_capacity("alice", 11)
        assert exc_info.value.details["quota"] == 10
