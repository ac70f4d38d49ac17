"""Tests for the trash purge worker and the relink script."""

from datetime import timedelta

from cloudvault.models import Node
from cloudvault.services.hierarchy_service import HierarchyService
from cloudvault.services.upload_service import UploadCoordinator
from cloudvault.storage import get_content_store
from scripts.relink_file import main as relink_main
from tests.conftest import payload
import worker


class TestWorker:

    def test_purge_once_removes_expired_nodes(self, db):
        store = get_content_store()
        svc = HierarchyService(db, store)
        node = UploadCoordinator(db, store).upload("alice", payload(5), "a.txt").node
        svc.trash("alice", node.id)
        node.permanent_delete_at = node.deleted_at - timedelta(days=1)
        db.commit()

        assert worker.purge_once() == 1
        db.expire_all()
        assert db.query(Node).count() == 0

    def test_purge_once_with_nothing_expired(self):
        assert worker.purge_once() == 0


class TestRelinkScript:

    def test_unknown_node_exits_nonzero(self, tmp_path, capsys):
        source = tmp_path / "a.txt"
        source.write_bytes(b"x")
        assert relink_main(["0" * 32, str(source)]) == 1
        assert "✗" in capsys.readouterr().out

    def test_relink_points_node_at_copy(self, db, tmp_path, capsys):
        store = get_content_store()
        node = UploadCoordinator(db, store).upload("alice", payload(5), "a.txt").node
        store.delete(node.path)
        source = tmp_path / "restored.txt"
        source.write_bytes(b"xxxxx")

        assert relink_main([node.id, str(source)]) == 0
        assert "✓" in capsys.readouterr().out
        db.expire_all()
        assert db.get(Node, node.id).path.startswith("alice/restored")
