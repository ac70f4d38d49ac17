"""Tests for PathReconciler: stale-key recovery and manual relink."""

import io

import pytest

from cloudvault.exceptions import ContentMissingError, ValidationError
from cloudvault.models import Activity
from cloudvault.services.hierarchy_service import HierarchyService
from cloudvault.services.reconciler import PathReconciler
from cloudvault.services.upload_service import UploadCoordinator
from tests.conftest import payload


def _put(store, key, size):
    store.write(key, io.BytesIO(b"y" * size))


@pytest.fixture()
def stale_node(db, store):
    """A 10-byte report.pdf whose stored object has disappeared."""
    node = UploadCoordinator(db, store).upload("alice", payload(10), "report.pdf").node
    store.delete(node.path)
    return node


class TestResolve:

    def test_existing_key_returned_unchanged(self, db, store):
        node = UploadCoordinator(db, store).upload("alice", payload(10), "a.txt").node
        assert PathReconciler(db, store).resolve(node) == node.path

    def test_prefers_owner_area(self, db, store, stale_node):
        _put(store, "bob/report-1.pdf", 10)
        _put(store, "alice/report-2.pdf", 10)
        assert PathReconciler(db, store).resolve(stale_node) == "alice/report-2.pdf"
        db.refresh(stale_node)
        assert stale_node.path == "alice/report-2.pdf"

    def test_falls_back_to_other_areas(self, db, store, stale_node):
        _put(store, "alice/report-2.pdf", 99)
        _put(store, "bob/report-1.pdf", 10)
        assert PathReconciler(db, store).resolve(stale_node) == "bob/report-1.pdf"

    def test_name_only_match_last(self, db, store, stale_node):
        _put(store, "bob/report-1.pdf", 99)
        _put(store, "alice/report-2.pdf", 98)
        assert PathReconciler(db, store).resolve(stale_node) == "alice/report-2.pdf"

    def test_name_match_is_case_insensitive(self, db, store, stale_node):
        _put(store, "alice/REPORT-old.pdf", 10)
        assert PathReconciler(db, store).resolve(stale_node) == "alice/REPORT-old.pdf"

    def test_zero_size_matches_on_name(self, db, store):
        node = UploadCoordinator(db, store).upload("alice", payload(0), "empty.txt").node
        store.delete(node.path)
        _put(store, "alice/empty-123.txt", 42)
        assert PathReconciler(db, store).resolve(node) == "alice/empty-123.txt"

    def test_nothing_found_raises(self, db, store, stale_node):
        _put(store, "alice/unrelated.pdf", 10)
        with pytest.raises(ContentMissingError) as exc_info:
            PathReconciler(db, store).resolve(stale_node)
        assert exc_info.value.status_code == 404


class TestRelink:

    def test_relink_copies_into_owner_area(self, db, store, stale_node, tmp_path):
        source = tmp_path / "recovered.pdf"
        source.write_bytes(b"z" * 10)

        node = PathReconciler(db, store).relink(stale_node.id, str(source))
        assert node.path == "alice/recovered.pdf"
        assert store.exists("alice/recovered.pdf")
        assert db.query(Activity).filter(Activity.type == "relink").count() == 1

    def test_relink_avoids_overwriting(self, db, store, stale_node, tmp_path):
        _put(store, "alice/recovered.pdf", 3)
        source = tmp_path / "recovered.pdf"
        source.write_bytes(b"z" * 10)

        node = PathReconciler(db, store).relink(stale_node.id, str(source))
        assert node.path != "alice/recovered.pdf"
        assert node.path.startswith("alice/recovered-")
        assert b"".join(store.read("alice/recovered.pdf")) == b"yyy"

    def test_relink_missing_source(self, db, store, stale_node, tmp_path):
        with pytest.raises(ValidationError):
            PathReconciler(db, store).relink(stale_node.id, str(tmp_path / "nope.pdf"))

    def test_relink_folder_rejected(self, db, store, tmp_path):
        folder = HierarchyService(db, store).create_folder("alice", "Docs")
        source = tmp_path / "x.txt"
        source.write_bytes(b"x")
        with pytest.raises(ValidationError):
            PathReconciler(db, store).relink(folder.id, str(source))
