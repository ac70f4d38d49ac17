"""Share manager: direct shares and public-link tokens."""

import logging
import secrets
from typing import List, Tuple

from sqlalchemy.orm import Session

from ..exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Node, NodeShare
from ..repositories.node_repository import NodeRepository
from . import activity_service

logger = logging.getLogger(__name__)

PERMISSIONS = ("view", "edit")


def generate_token() -> str:
    """16 random bytes, hex encoded."""
    return secrets.token_hex(16)


class ShareManager:
    """Grants, revokes and resolves access to nodes.

    Public methods:
        share, unshare, remove_share, list_shared_with  -- direct shares
        create_public_link, revoke_public_link           -- owner link control
        resolve_public_link                              -- anonymous lookup
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = NodeRepository(db)

    def share(self, owner_id: str, node_id: str, target_user_id: str, permission: str = "view") -> NodeShare:
        target_user_id = (target_user_id or "").strip()
        if not target_user_id:
            raise ValidationError("Target user is required", field="user_id")
        if permission not in PERMISSIONS:
            raise ValidationError(f"Permission must be one of {PERMISSIONS}", field="permission")
        if target_user_id == owner_id:
            raise ValidationError("Cannot share a file with yourself", field="user_id")

        node = self.repo.get_owned(owner_id, node_id)
        if self.repo.get_share(node.id, target_user_id):
            raise ConflictError(
                "File already shared with this user",
                details={"node_id": node.id, "user_id": target_user_id},
            )

        share = self.repo.add_share(node, target_user_id, permission)
        self.db.commit()
        logger.info("Node shared", extra={"node_id": node.id, "target_user_id": target_user_id})

        activity_service.record(
            self.db, "share", owner_id, file_id=node.id, file_name=node.name,
            target_user_id=target_user_id, details={"permission": permission},
        )
        return share

    def unshare(self, owner_id: str, node_id: str, target_user_id: str) -> None:
        """Owner revokes a direct share."""
        node = self.repo.get_owned(owner_id, node_id)
        share = self.repo.get_share(node.id, target_user_id)
        if share is None:
            raise NotFoundError(
                "File is not shared with this user",
                details={"node_id": node.id, "user_id": target_user_id},
            )
        self.repo.remove_share(node, share)
        self.db.commit()

        activity_service.record(
            self.db, "share", owner_id, file_id=node.id, file_name=node.name,
            target_user_id=target_user_id, details={"action": "revoked"},
        )

    def remove_share(self, recipient_id: str, node_id: str) -> None:
        """Recipient drops a node from their shared view."""
        node = self.repo.get_by_id(node_id)
        share = self.repo.get_share(node.id, recipient_id)
        if share is None:
            raise ForbiddenError("This file is not shared with you")
        self.repo.remove_share(node, share)
        self.db.commit()

        activity_service.record(
            self.db, "share", recipient_id, file_id=node.id, file_name=node.name,
            target_user_id=node.owner_id, details={"action": "removed_by_recipient"},
        )

    def list_shared_with(self, user_id: str) -> List[Tuple[Node, NodeShare]]:
        return self.repo.list_shared_with(user_id)

    def create_public_link(self, owner_id: str, node_id: str) -> str:
        """Token for anonymous download. Idempotent while the link is active."""
        node = self.repo.get_owned(owner_id, node_id)
        if node.is_folder:
            raise ValidationError("Cannot create public link for folders", field="node_id")
        if node.is_public and node.public_url:
            return node.public_url

        token = generate_token()
        self.repo.update(node, is_public=True, public_url=token)
        self.db.commit()

        activity_service.record(
            self.db, "share_link", owner_id, file_id=node.id, file_name=node.name,
            details={"action": "created"},
        )
        return token

    def revoke_public_link(self, owner_id: str, node_id: str) -> Node:
        node = self.repo.get_owned(owner_id, node_id)
        self.repo.update(node, is_public=False, public_url=None)
        self.db.commit()

        activity_service.record(
            self.db, "share_link", owner_id, file_id=node.id, file_name=node.name,
            details={"action": "revoked"},
        )
        return node

    def resolve_public_link(self, token: str) -> Node:
        """Public, non-trashed file behind *token*. Raises NotFoundError."""
        node = self.repo.get_by_public_token(token) if token else None
        if node is None or node.in_trash or node.is_folder:
            raise NotFoundError("Link not found or expired")
        return node
