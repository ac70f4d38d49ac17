"""Path reconciler: recover nodes whose content key no longer resolves.

The download path calls resolve() lazily. When the stored key is missing
the store is searched for the most plausible object and the node is re-bound
to it. relink() is the manual counterpart used by scripts/relink_file.py.
"""

import logging
import os
import time
from pathlib import Path
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..exceptions import ContentMissingError, ValidationError, VaultException
from ..models import Node
from ..repositories.node_repository import NodeRepository
from ..storage import ContentEntry, ContentStore
from . import activity_service

logger = logging.getLogger(__name__)


def _stem(name: str) -> str:
    return os.path.splitext(os.path.basename(name))[0].lower()


class PathReconciler:
    """Finds and re-binds content for nodes with stale keys.

    Best-match order:
        1. first size+name match in the owner's area
        2. first size+name match in any other area
        3. first name-only match, owner's area first
    Listings are sorted by key, so the choice is deterministic.
    """

    def __init__(self, db: Session, store: ContentStore, settings: Optional[Settings] = None):
        self.db = db
        self.store = store
        self.settings = settings or default_settings
        self.repo = NodeRepository(db)

    def resolve(self, node: Node) -> str:
        """Readable content key for *node*. Raises ContentMissingError."""
        if node.path and self.store.exists(node.path):
            return node.path

        logger.warning(
            "Content key missing, searching store",
            extra={"node_id": node.id, "key": node.path},
        )
        try:
            found = self._search(node)
        except (OSError, VaultException) as e:
            logger.warning("Store search failed for node %s: %s", node.id, e)
            found = None

        if found is None:
            raise ContentMissingError(node.id)

        self.repo.update(node, path=found)
        self.db.commit()
        logger.info("Re-bound node to recovered content", extra={"node_id": node.id, "key": found})
        return found

    def _search(self, node: Node) -> Optional[str]:
        target = _stem(node.original_name or node.name)
        if not target:
            return None

        def name_matches(entry: ContentEntry) -> bool:
            return target in _stem(entry.name)

        def size_matches(entry: ContentEntry) -> bool:
            # Zero-size records match on name alone.
            return not node.size or entry.size == node.size

        owner_entries = self.store.list(node.owner_id)
        hit = self._first(owner_entries, lambda e: name_matches(e) and size_matches(e))
        if hit:
            return hit

        other_entries: List[ContentEntry] = []
        for area in self.store.areas():
            if area == node.owner_id:
                continue
            entries = self.store.list(area)
            hit = self._first(entries, lambda e: name_matches(e) and size_matches(e))
            if hit:
                return hit
            other_entries.extend(entries)

        return self._first(owner_entries, name_matches) or self._first(other_entries, name_matches)

    @staticmethod
    def _first(entries: Iterable[ContentEntry], predicate) -> Optional[str]:
        for entry in entries:
            if predicate(entry):
                return entry.key
        return None

    def relink(self, node_id: str, source_file: str) -> Node:
        """Copy *source_file* into the owner's area and point the node at it."""
        node = self.repo.get(node_id)
        if node.is_folder:
            raise ValidationError("Folders have no content to relink", field="node_id")

        source = Path(source_file)
        if not source.is_file():
            raise ValidationError(f"Source file not found: {source_file}", field="source_file")

        key = f"{node.owner_id}/{source.name}"
        if self.store.exists(key):
            key = f"{node.owner_id}/{source.stem}-{int(time.time() * 1000)}{source.suffix}"

        with open(source, "rb") as handle:
            self.store.write(key, handle, chunk_size=self.settings.stream_chunk_size)

        old_path = node.path
        self.repo.update(node, path=key)
        self.db.commit()
        logger.info("Node relinked", extra={"node_id": node.id, "key": key})

        activity_service.record(
            self.db, "relink", node.owner_id, file_id=node.id, file_name=node.name,
            details={"oldPath": old_path or "", "newPath": key},
        )
        return node
