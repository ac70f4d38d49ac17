"""Download service: readable streams for owners, recipients and link holders."""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..exceptions import ValidationError
from ..models import Node
from ..repositories.node_repository import NodeRepository
from ..storage import ContentStore
from . import activity_service
from .reconciler import PathReconciler
from .share_service import ShareManager

logger = logging.getLogger(__name__)


@dataclass
class Download:
    node: Node
    key: str
    chunks: Iterator[bytes]

    @property
    def filename(self) -> str:
        return self.node.original_name or self.node.name


class DownloadService:
    def __init__(self, db: Session, store: ContentStore, settings: Optional[Settings] = None):
        self.db = db
        self.store = store
        self.settings = settings or default_settings
        self.repo = NodeRepository(db)
        self.reconciler = PathReconciler(db, store, self.settings)

    def open_for_user(self, user_id: str, node_id: str) -> Download:
        node = self.repo.get_accessible(user_id, node_id)
        download = self._open(node)
        activity_service.record(self.db, "download", user_id, file_id=node.id, file_name=node.name)
        return download

    def open_public(self, token: str) -> Download:
        node = ShareManager(self.db).resolve_public_link(token)
        download = self._open(node)
        activity_service.record(
            self.db, "download_public", None, file_id=node.id, file_name=node.name,
            target_user_id=node.owner_id,
        )
        return download

    def _open(self, node: Node) -> Download:
        if node.is_folder:
            raise ValidationError("Cannot download folders", field="node_id")
        key = self.reconciler.resolve(node)
        chunks = self.store.read(key, chunk_size=self.settings.stream_chunk_size)
        return Download(node=node, key=key, chunks=chunks)
