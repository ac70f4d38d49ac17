"""Upload coordinator: single and batch (folder-tree) uploads.

Bytes are written to the content store before the database row exists, so
every failure path after a write removes the written object. Duplicate
detection and node creation for one (owner, folder) pair are serialized by
an in-process lock.
"""

import logging
import mimetypes
import os
import threading
import weakref
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..exceptions import ContentKeyNotFoundError, ValidationError
from ..models import Node
from ..repositories.node_repository import NodeRepository
from ..storage import ContentStore
from . import activity_service
from .file_types import classify
from .hierarchy_service import HierarchyService
from .quota_service import QuotaLedger

logger = logging.getLogger(__name__)

# (owner_id, parent_id) -> lock. Entries vanish once no caller holds the lock.
# Single-process guarantee only.
_folder_locks: "weakref.WeakValueDictionary[Tuple[str, Optional[str]], threading.Lock]" = (
    weakref.WeakValueDictionary()
)
_folder_locks_guard = threading.Lock()


def _folder_lock(owner_id: str, parent_id: Optional[str]) -> threading.Lock:
    with _folder_locks_guard:
        lock = _folder_locks.get((owner_id, parent_id))
        if lock is None:
            lock = threading.Lock()
            _folder_locks[(owner_id, parent_id)] = lock
        return lock


@dataclass
class UploadItem:
    """One incoming file. relative_path carries the folder structure of a
    directory upload, e.g. ``"photos/2024/beach.jpg"``."""

    stream: BinaryIO
    original_name: str
    content_type: Optional[str] = None
    declared_size: Optional[int] = None
    relative_path: Optional[str] = None


@dataclass
class UploadResult:
    node: Node
    duplicate: bool = False


@dataclass
class BatchUploadResult:
    nodes: List[Node] = field(default_factory=list)
    folders_created: int = 0
    total_bytes: int = 0
    skipped_duplicates: int = 0


@dataclass
class _Written:
    item: UploadItem
    name: str
    key: str
    size: int
    committed: bool = False


def _clean_file_name(original_name: Optional[str]) -> str:
    name = os.path.basename((original_name or "").replace("\\", "/")).strip()
    if not name:
        raise ValidationError("File name is required", field="file")
    return name


def _folder_segments(relative_path: Optional[str]) -> List[str]:
    """Directory part of a relative upload path, empty and dot segments dropped."""
    if not relative_path:
        return []
    parts = relative_path.replace("\\", "/").split("/")[:-1]
    return [p.strip() for p in parts if p.strip() and p.strip() not in (".", "..")]


class UploadCoordinator:
    """Accepts uploads for one request."""

    def __init__(self, db: Session, store: ContentStore, settings: Optional[Settings] = None):
        self.db = db
        self.store = store
        self.settings = settings or default_settings
        self.repo = NodeRepository(db)
        self.quota = QuotaLedger(db, self.settings)
        self.hierarchy = HierarchyService(db, store, self.settings)

    # ------------------------------------------------------------------
    # Single upload
    # ------------------------------------------------------------------

    def upload(
        self,
        owner_id: str,
        stream: BinaryIO,
        original_name: str,
        content_type: Optional[str] = None,
        parent_id: Optional[str] = None,
        declared_size: Optional[int] = None,
    ) -> UploadResult:
        name = _clean_file_name(original_name)
        self.hierarchy.require_parent(owner_id, parent_id)
        if declared_size:
            self.quota.ensure_capacity(owner_id, declared_size)

        written = self._write(owner_id, UploadItem(stream, name, content_type, declared_size), name)
        try:
            with _folder_lock(owner_id, parent_id):
                self.quota.ensure_capacity(owner_id, written.size)

                existing = self.repo.find_duplicate(owner_id, name, written.size, parent_id)
                if existing is not None:
                    self._discard(written.key)
                    written.committed = True
                    logger.info(
                        "Duplicate upload reused existing node",
                        extra={"node_id": existing.id, "owner_id": owner_id},
                    )
                    self.quota.recompute(owner_id)
                    return UploadResult(node=existing, duplicate=True)

                node = self._create_file_node(owner_id, written, parent_id)
                self.db.commit()
                written.committed = True
        except BaseException:
            self.db.rollback()
            if not written.committed:
                self._discard(written.key)
            raise

        activity_service.record(
            self.db, "upload", owner_id, file_id=node.id, file_name=node.name,
            details={"type": node.type, "size": node.size},
        )
        self.quota.recompute(owner_id)
        logger.info("File uploaded", extra={"node_id": node.id, "owner_id": owner_id, "size": node.size})
        return UploadResult(node=node)

    # ------------------------------------------------------------------
    # Batch upload
    # ------------------------------------------------------------------

    def upload_batch(
        self,
        owner_id: str,
        items: Sequence[UploadItem],
        parent_id: Optional[str] = None,
    ) -> BatchUploadResult:
        """Upload many files, recreating their folder structure under *parent_id*.

        The whole batch is checked against the quota before any node is
        created; intermediate folders are materialized (or reused) before
        any file node.
        """
        if not items:
            raise ValidationError("No files uploaded", field="files")
        if len(items) > self.settings.max_batch_files:
            raise ValidationError(
                f"At most {self.settings.max_batch_files} files can be uploaded at once",
                field="files",
            )
        self.hierarchy.require_parent(owner_id, parent_id)
        self._check_depth(parent_id, items)

        written: List[_Written] = []
        result = BatchUploadResult()
        try:
            for item in items:
                name = _clean_file_name(item.original_name)
                written.append(self._write(owner_id, item, name))

            incoming = sum(w.size for w in written)
            self.quota.ensure_capacity(owner_id, incoming)

            targets, result.folders_created = self._materialize_folders(owner_id, parent_id, written)
            self.db.commit()

            for entry, target_id in zip(written, targets):
                with _folder_lock(owner_id, target_id):
                    existing = self.repo.find_duplicate(owner_id, entry.name, entry.size, target_id)
                    if existing is not None:
                        self._discard(entry.key)
                        entry.committed = True
                        result.nodes.append(existing)
                        result.skipped_duplicates += 1
                        activity_service.record(
                            self.db, "upload_skipped_duplicate", owner_id,
                            file_id=existing.id, file_name=existing.name,
                            details={"parentFolder": target_id or "root"},
                        )
                        continue

                    node = self._create_file_node(owner_id, entry, target_id)
                    self.db.commit()
                    entry.committed = True

                result.nodes.append(node)
                result.total_bytes += entry.size
                activity_service.record(
                    self.db, "upload", owner_id, file_id=node.id, file_name=node.name,
                    details={
                        "type": node.type,
                        "size": node.size,
                        "folderPath": "/".join(_folder_segments(entry.item.relative_path)),
                    },
                )
        except BaseException:
            self.db.rollback()
            for entry in written:
                if not entry.committed:
                    self._discard(entry.key)
            raise

        self.quota.recompute(owner_id)
        logger.info(
            "Batch upload finished",
            extra={
                "owner_id": owner_id,
                "files": len(result.nodes),
                "folders_created": result.folders_created,
                "total_bytes": result.total_bytes,
                "skipped": result.skipped_duplicates,
            },
        )
        return result

    def _check_depth(self, parent_id: Optional[str], items: Sequence[UploadItem]) -> None:
        """Reject the batch before any write when a relative path nests too deep."""
        base = self.hierarchy.folder_depth(parent_id)
        for item in items:
            if base + len(_folder_segments(item.relative_path)) > self.settings.max_folder_depth:
                raise ValidationError(
                    f"Folders cannot be nested more than {self.settings.max_folder_depth} levels deep",
                    field="file_paths",
                )

    def _materialize_folders(
        self, owner_id: str, parent_id: Optional[str], written: List[_Written]
    ) -> Tuple[List[Optional[str]], int]:
        """Resolve the target folder of every entry, creating missing folders.

        Returns the per-entry target ids and the number of folders created.
        """
        cache: Dict[Tuple[Optional[str], str], str] = {}
        created = 0
        targets: List[Optional[str]] = []
        for entry in written:
            current = parent_id
            for segment in _folder_segments(entry.item.relative_path):
                cached = cache.get((current, segment))
                if cached is None:
                    folder = self.repo.find_folder_by_name(owner_id, current, segment)
                    if folder is None:
                        folder = self.repo.create(
                            owner_id=owner_id, name=segment, is_folder=True,
                            type="folder", size=0, path=None, parent_id=current,
                        )
                        created += 1
                    cached = folder.id
                    cache[(current, segment)] = cached
                current = cached
            targets.append(current)
        return targets, created

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, owner_id: str, item: UploadItem, name: str) -> _Written:
        key = self.store.new_key(owner_id, name)
        size = self.store.write(
            key,
            item.stream,
            max_bytes=self.settings.max_upload_bytes,
            chunk_size=self.settings.stream_chunk_size,
        )
        return _Written(item=item, name=name, key=key, size=size)

    def _create_file_node(self, owner_id: str, written: _Written, parent_id: Optional[str]) -> Node:
        mime = (
            written.item.content_type
            or mimetypes.guess_type(written.name)[0]
            or "application/octet-stream"
        )
        return self.repo.create(
            owner_id=owner_id,
            name=written.name,
            original_name=written.name,
            is_folder=False,
            type=classify(mime),
            mime_type=mime,
            size=written.size,
            path=written.key,
            parent_id=parent_id,
        )

    def _discard(self, key: str) -> None:
        """Remove a written object; failures are logged, never raised."""
        try:
            self.store.delete(key)
        except ContentKeyNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to clean up uploaded object %s: %s", key, e)
