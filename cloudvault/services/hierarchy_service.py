"""Hierarchy service: deep module for the file/folder tree.

Owns folder creation, rename, move, copy, the trash lifecycle and permanent
deletion. Every public method commits its own change, then records an
activity and refreshes the owner's quota snapshot.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.timeutil import utcnow
from ..exceptions import (
    ContentKeyNotFoundError,
    CycleError,
    FolderNameConflictError,
    FolderNotFoundError,
    IntegrityError,
    InvalidParentError,
    NotFoundError,
    SelfMoveError,
    ValidationError,
)
from ..models import Node
from ..models.node import FOLDER_TYPE
from ..repositories.node_repository import NodeRepository
from ..storage import ContentStore
from . import activity_service
from .quota_service import QuotaLedger

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


def _location(parent_id: Optional[str]) -> str:
    return parent_id or "root"


class HierarchyService:
    """Tree operations for one request.

    Public methods:
        create_folder, rename, move, copy      -- tree edits
        trash, restore                         -- soft delete (no cascade)
        permanent_delete, empty_trash          -- hard delete (children go to root)
        purge_expired_trash                    -- retention sweep, all accounts
        check_if_subfolder                     -- bounded upward walk
        list_folder, list_trash, get_info      -- reads
    """

    def __init__(self, db: Session, store: ContentStore, settings: Optional[Settings] = None):
        self.db = db
        self.store = store
        self.settings = settings or default_settings
        self.repo = NodeRepository(db)
        self.quota = QuotaLedger(db, self.settings)

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Name is required", field="name")
        return cleaned

    def require_parent(self, owner_id: str, parent_id: Optional[str]) -> Optional[Node]:
        """Upload/create target: an owned, non-trashed folder or root.

        Raises InvalidParentError otherwise.
        """
        if parent_id is None:
            return None
        parent = self.repo.get_by_id_optional(parent_id)
        if (
            parent is None
            or parent.owner_id != owner_id
            or not parent.is_folder
            or parent.in_trash
        ):
            raise InvalidParentError(parent_id)
        return parent

    def _require_target_folder(self, owner_id: str, target_id: Optional[str]) -> Optional[Node]:
        """Move/copy target: same rule as require_parent, reported as 404."""
        if target_id is None:
            return None
        try:
            return self.require_parent(owner_id, target_id)
        except InvalidParentError:
            raise FolderNotFoundError(target_id) from None

    def resolve_folder_name(self, owner_id: str, name: str) -> str:
        """Id of the first non-trashed folder called *name*. Raises FolderNotFoundError."""
        folder = self.repo.find_any_folder_by_name(owner_id, name)
        if folder is None:
            raise FolderNotFoundError(name)
        return folder.id

    def folder_depth(self, folder_id: Optional[str]) -> int:
        """Number of folders from root down to *folder_id* inclusive; 0 for root."""
        depth = 0
        current = folder_id
        visited: Set[str] = set()
        while current is not None:
            if current in visited:
                raise IntegrityError(
                    "Parent chain contains a cycle",
                    details={"start": folder_id, "repeated": current},
                )
            visited.add(current)
            exists, current = self.repo.parent_id_of(current)
            if not exists:
                break
            depth += 1
        return depth

    def _subtree_height(self, folder: Node) -> int:
        """Folder levels in *folder*'s subtree, the folder itself counting as 1."""
        height = 0
        level = [folder]
        seen: Set[str] = set()
        while level:
            height += 1
            next_level: List[Node] = []
            for node in level:
                if node.id in seen:
                    raise IntegrityError("Folder tree contains a cycle", details={"node_id": node.id})
                seen.add(node.id)
                next_level.extend(c for c in self.repo.children_of(node.id) if c.is_folder)
            level = next_level
        return height

    def ensure_depth(self, depth: int) -> None:
        """ValidationError when a folder would sit deeper than ``max_folder_depth``."""
        if depth > self.settings.max_folder_depth:
            raise ValidationError(
                f"Folders cannot be nested more than {self.settings.max_folder_depth} levels deep",
                field="parent_id",
            )

    def check_if_subfolder(self, start_folder_id: str, ancestor_id: str) -> bool:
        """True when walking up from *start_folder_id* (inclusive) reaches *ancestor_id*.

        Folder creation and moves keep chains within ``max_folder_depth``; a
        longer chain or a revisited node means the stored tree is corrupt.
        """
        current: Optional[str] = start_folder_id
        visited: Set[str] = set()
        while current is not None:
            if current == ancestor_id:
                return True
            if current in visited:
                raise IntegrityError(
                    "Parent chain contains a cycle",
                    details={"start": start_folder_id, "repeated": current},
                )
            visited.add(current)
            if len(visited) > self.settings.max_folder_depth:
                raise IntegrityError(
                    "Parent chain exceeds the maximum folder depth",
                    details={"start": start_folder_id, "max_depth": self.settings.max_folder_depth},
                )
            exists, parent_id = self.repo.parent_id_of(current)
            if not exists:
                return False
            current = parent_id
        return False

    # ------------------------------------------------------------------
    # Tree edits
    # ------------------------------------------------------------------

    def create_folder(self, owner_id: str, name: str, parent_id: Optional[str] = None) -> Node:
        name = self._clean_name(name)
        self.require_parent(owner_id, parent_id)

        if self.repo.find_folder_by_name(owner_id, parent_id, name):
            raise FolderNameConflictError(name, parent_id)
        self.ensure_depth(self.folder_depth(parent_id) + 1)

        folder = self.repo.create(
            owner_id=owner_id,
            name=name,
            is_folder=True,
            type=FOLDER_TYPE,
            size=0,
            path=None,
            parent_id=parent_id,
        )
        self.db.commit()
        logger.info("Folder created", extra={"node_id": folder.id, "owner_id": owner_id})

        activity_service.record(
            self.db, "create_folder", owner_id, file_id=folder.id, file_name=folder.name,
            details={"parentFolder": _location(parent_id)},
        )
        self.quota.recompute(owner_id)
        return folder

    def rename(self, owner_id: str, node_id: str, new_name: str) -> Node:
        """Rename without re-checking folder-name collisions."""
        new_name = self._clean_name(new_name)
        node = self.repo.get_owned(owner_id, node_id)
        old_name = node.name

        self.repo.update(node, name=new_name)
        self.db.commit()

        activity_service.record(
            self.db, "rename", owner_id, file_id=node.id, file_name=new_name,
            details={"oldName": old_name, "newName": new_name},
        )
        return node

    def move(self, owner_id: str, node_id: str, target_folder_id: Optional[str]) -> Node:
        node = self.repo.get_owned(owner_id, node_id)

        if target_folder_id is not None:
            if target_folder_id == node.id:
                raise SelfMoveError(node.id)
            self._require_target_folder(owner_id, target_folder_id)
            if node.is_folder:
                if self.check_if_subfolder(target_folder_id, node.id):
                    raise CycleError(node.id, target_folder_id)
                self.ensure_depth(self.folder_depth(target_folder_id) + self._subtree_height(node))

        old_parent = node.parent_id
        self.repo.update(node, parent_id=target_folder_id)
        self.db.commit()
        logger.info(
            "Node moved",
            extra={"node_id": node.id, "from": _location(old_parent), "to": _location(target_folder_id)},
        )

        activity_service.record(
            self.db, "move", owner_id, file_id=node.id, file_name=node.name,
            details={"oldLocation": _location(old_parent), "newLocation": _location(target_folder_id)},
        )
        return node

    def copy(self, owner_id: str, node_id: str, target_folder_id: Optional[str]) -> Node:
        """Copy a node. The copy shares the source's content key; a folder copy
        copies the folder node only."""
        source = self.repo.get_owned(owner_id, node_id)
        self._require_target_folder(owner_id, target_folder_id)
        if source.is_folder:
            self.ensure_depth(self.folder_depth(target_folder_id) + 1)
        else:
            self.quota.ensure_capacity(owner_id, source.size or 0)

        duplicate = self.repo.create(
            owner_id=owner_id,
            name=source.name + COPY_SUFFIX,
            original_name=source.original_name,
            is_folder=source.is_folder,
            type=source.type,
            mime_type=source.mime_type,
            size=source.size,
            path=source.path,
            parent_id=target_folder_id,
        )
        self.db.commit()

        activity_service.record(
            self.db, "copy", owner_id, file_id=duplicate.id, file_name=duplicate.name,
            details={"originalFile": source.name, "newLocation": _location(target_folder_id)},
        )
        self.quota.recompute(owner_id)
        return duplicate

    # ------------------------------------------------------------------
    # Trash lifecycle
    # ------------------------------------------------------------------

    def trash(self, owner_id: str, node_id: str) -> Node:
        """Soft delete one node. Children keep their own trash state."""
        node = self.repo.get_owned(owner_id, node_id)
        now = utcnow()
        self.repo.update(
            node,
            in_trash=True,
            deleted_at=now,
            permanent_delete_at=now + timedelta(days=self.settings.trash_retention_days),
        )
        self.db.commit()

        activity_service.record(self.db, "delete", owner_id, file_id=node.id, file_name=node.name)
        self.quota.recompute(owner_id)
        return node

    def restore(self, owner_id: str, node_id: str) -> Node:
        """Take a node out of the trash.

        A node whose parent is itself trashed comes back at root.
        """
        node = self.repo.get_owned(owner_id, node_id)
        if not node.in_trash:
            raise NotFoundError("Node not found in trash", details={"node_id": node_id})

        fields = {"in_trash": False, "deleted_at": None, "permanent_delete_at": None}
        details = {}
        if node.parent_id is not None:
            parent = self.repo.get_by_id_optional(node.parent_id)
            if parent is None or parent.in_trash:
                fields["parent_id"] = None
                details["restoredTo"] = "root"

        self.repo.update(node, **fields)
        self.db.commit()

        activity_service.record(
            self.db, "restore", owner_id, file_id=node.id, file_name=node.name, details=details or None,
        )
        self.quota.recompute(owner_id)
        return node

    def permanent_delete(self, owner_id: str, node_id: str) -> int:
        """Hard delete one node. Children of a deleted folder move to root.

        Returns the number of node records removed.
        """
        node = self.repo.get_owned(owner_id, node_id)
        name = node.name
        removed = self._remove_nodes([node])

        activity_service.record(
            self.db, "permanent_delete", owner_id, file_id=node_id, file_name=name,
        )
        self.quota.recompute(owner_id)
        return removed

    def empty_trash(self, owner_id: str) -> int:
        """Permanently delete every trashed node of the owner.

        Only trashed rows go; a non-trashed child of a trashed folder is
        moved to root.
        """
        count = self._remove_nodes(self.repo.list_trash(owner_id))

        activity_service.record(
            self.db, "empty_trash", owner_id, file_name="Trash", details={"count": count},
        )
        self.quota.recompute(owner_id)
        logger.info("Trash emptied", extra={"owner_id": owner_id, "removed": count})
        return count

    def purge_expired_trash(self, now: Optional[datetime] = None) -> int:
        """Permanently delete trashed nodes past their retention, across accounts."""
        expired = self.repo.list_expired_trash(now)
        removed = [(node.owner_id, node.id, node.name) for node in expired]
        count = self._remove_nodes(expired)

        owners: Set[str] = set()
        for owner_id, node_id, name in removed:
            owners.add(owner_id)
            activity_service.record(
                self.db, "permanent_delete", owner_id, file_id=node_id, file_name=name,
                details={"reason": "retention_expired"},
            )

        for owner_id in sorted(owners):
            self.quota.recompute(owner_id)
        if count:
            logger.info("Purged expired trash", extra={"removed": count, "owners": len(owners)})
        return count

    def _remove_nodes(self, nodes: List[Node]) -> int:
        """Delete exactly *nodes*, commit, then drop content objects nothing references.

        Children outside the set are re-parented to root first.
        """
        doomed = {node.id for node in nodes}
        survivors: List[Node] = []
        for node in nodes:
            if not node.is_folder:
                continue
            for child in self.repo.children_of(node.id):
                if child.id in doomed:
                    child.parent_id = None
                else:
                    self.repo.update(child, parent_id=None)
                    survivors.append(child)
        self.db.flush()

        keys = {node.path for node in nodes if node.path}
        for node in nodes:
            self.repo.delete(node)

        orphaned = [key for key in sorted(keys) if self.repo.count_path_references(key) == 0]
        self.db.commit()

        for key in orphaned:
            self._delete_content(key)
        for child in survivors:
            activity_service.record(
                self.db, "move", child.owner_id, file_id=child.id, file_name=child.name,
                details={"newLocation": "root", "reason": "parent_deleted"},
            )
        return len(nodes)

    def _delete_content(self, key: str) -> None:
        try:
            self.store.delete(key)
        except ContentKeyNotFoundError:
            logger.debug("Content object already gone", extra={"key": key})
        except OSError as e:
            logger.warning("Failed to delete content object %s: %s", key, e)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_folder(
        self,
        owner_id: str,
        folder_id: Optional[str] = None,
        node_type: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "updated_at",
        order: str = "desc",
    ) -> List[Node]:
        if folder_id is not None:
            self._require_target_folder(owner_id, folder_id)
        return self.repo.find_by_parent(
            owner_id, folder_id, node_type=node_type, search=search, sort=sort, order=order,
        )

    def list_trash(self, owner_id: str) -> List[Node]:
        return self.repo.list_trash(owner_id)

    def get_info(self, user_id: str, node_id: str) -> Node:
        """Node details for the owner or a share recipient."""
        return self.repo.get_accessible(user_id, node_id)
