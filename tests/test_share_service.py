"""Tests for ShareManager: direct shares and public links."""

import re

import pytest

from cloudvault.exceptions import (
    ConflictError,
    ForbiddenError,
    NodeNotFoundError,
    NotFoundError,
    ValidationError,
)
from cloudvault.models import Activity, NodeShare
from cloudvault.services.hierarchy_service import HierarchyService
from cloudvault.services.share_service import ShareManager, generate_token
from cloudvault.services.upload_service import UploadCoordinator
from tests.conftest import payload


@pytest.fixture()
def node(db, store):
    return UploadCoordinator(db, store).upload("alice", payload(10), "a.txt").node


class TestDirectShares:

    def test_share_and_list(self, db, node):
        manager = ShareManager(db)
        share = manager.share("alice", node.id, "bob", "edit")
        assert share.permission == "edit"

        shared = manager.list_shared_with("bob")
        assert [(n.id, s.user_id) for n, s in shared] == [(node.id, "bob")]
        assert manager.list_shared_with("carol") == []

    def test_self_share_rejected(self, db, node):
        with pytest.raises(ValidationError):
            ShareManager(db).share("alice", node.id, "alice")

    def test_blank_target_rejected(self, db, node):
        with pytest.raises(ValidationError):
            ShareManager(db).share("alice", node.id, "  ")

    def test_unknown_permission_rejected(self, db, node):
        with pytest.raises(ValidationError):
            ShareManager(db).share("alice", node.id, "bob", "admin")

    def test_repeat_share_conflicts(self, db, node):
        manager = ShareManager(db)
        manager.share("alice", node.id, "bob")
        with pytest.raises(ConflictError):
            manager.share("alice", node.id, "bob")

    def test_only_owner_can_share(self, db, node):
        with pytest.raises(NodeNotFoundError):
            ShareManager(db).share("bob", node.id, "carol")

    def test_recipient_sees_info(self, db, store, node):
        ShareManager(db).share("alice", node.id, "bob")
        info = HierarchyService(db, store).get_info("bob", node.id)
        assert info.id == node.id
        with pytest.raises(NodeNotFoundError):
            HierarchyService(db, store).get_info("carol", node.id)

    def test_trashed_nodes_hidden_from_recipient_listing(self, db, store, node):
        manager = ShareManager(db)
        manager.share("alice", node.id, "bob")
        HierarchyService(db, store).trash("alice", node.id)
        assert manager.list_shared_with("bob") == []

    def test_unshare(self, db, node):
        manager = ShareManager(db)
        manager.share("alice", node.id, "bob")
        manager.unshare("alice", node.id, "bob")
        assert db.query(NodeShare).count() == 0
        with pytest.raises(NotFoundError):
            manager.unshare("alice", node.id, "bob")

    def test_recipient_removes_share(self, db, node):
        manager = ShareManager(db)
        manager.share("alice", node.id, "bob")
        manager.remove_share("bob", node.id)
        assert manager.list_shared_with("bob") == []
        activity = db.query(Activity).filter(Activity.user_id == "bob").one()
        assert activity.details == {"action": "removed_by_recipient"}

    def test_non_recipient_cannot_remove_share(self, db, node):
        with pytest.raises(ForbiddenError):
            ShareManager(db).remove_share("carol", node.id)

    def test_permanent_delete_drops_shares(self, db, store, node):
        ShareManager(db).share("alice", node.id, "bob")
        HierarchyService(db, store).permanent_delete("alice", node.id)
        assert db.query(NodeShare).count() == 0


class TestPublicLinks:

    def test_token_format(self):
        assert re.fullmatch(r"[0-9a-f]{32}", generate_token())

    def test_create_is_idempotent(self, db, node):
        manager = ShareManager(db)
        token = manager.create_public_link("alice", node.id)
        assert manager.create_public_link("alice", node.id) == token
        assert manager.resolve_public_link(token).id == node.id

    def test_folders_have_no_public_link(self, db, store):
        folder = HierarchyService(db, store).create_folder("alice", "Docs")
        with pytest.raises(ValidationError):
            ShareManager(db).create_public_link("alice", folder.id)

    def test_revoked_link_no_longer_resolves(self, db, node):
        manager = ShareManager(db)
        token = manager.create_public_link("alice", node.id)
        revoked = manager.revoke_public_link("alice", node.id)
        assert revoked.is_public is False
        with pytest.raises(NotFoundError):
            manager.resolve_public_link(token)

    def test_new_link_after_revoke_gets_new_token(self, db, node):
        manager = ShareManager(db)
        first = manager.create_public_link("alice", node.id)
        manager.revoke_public_link("alice", node.id)
        assert manager.create_public_link("alice", node.id) != first

    def test_trashed_node_link_does_not_resolve(self, db, store, node):
        manager = ShareManager(db)
        token = manager.create_public_link("alice", node.id)
        HierarchyService(db, store).trash("alice", node.id)
        with pytest.raises(NotFoundError):
            manager.resolve_public_link(token)

    def test_unknown_token(self, db):
        with pytest.raises(NotFoundError):
            ShareManager(db).resolve_public_link("0" * 32)
