"""Node repository for database operations.

Owns all node and share query logic. Queries are scoped by owner unless the
method name says otherwise (shared access, public tokens, purge).
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_

from ..core.timeutil import utcnow
from ..exceptions import NodeNotFoundError
from ..models import Node, NodeShare
from .base import BaseRepository

# Accepted values for the ``sort`` listing parameter (camelCase aliases
# kept for browser clients).
SORT_COLUMNS = {
    "name": Node.name,
    "size": Node.size,
    "type": Node.type,
    "created_at": Node.created_at,
    "createdAt": Node.created_at,
    "updated_at": Node.updated_at,
    "updatedAt": Node.updated_at,
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class NodeRepository(BaseRepository[Node]):
    """Repository for file and folder nodes plus their share entries.

    Trash visibility is explicit per method: listings and duplicate/name
    lookups skip trashed nodes, ownership lookups do not.
    """

    model_class = Node
    not_found_error = NodeNotFoundError

    @staticmethod
    def _parent_filter(parent_id: Optional[str]):
        if parent_id is None:
            return Node.parent_id.is_(None)
        return Node.parent_id == parent_id

    def create(self, **fields) -> Node:
        """Insert a node and return it with defaults populated."""
        node = Node(**fields)
        self.db.add(node)
        self.db.flush()
        self.db.refresh(node)
        return node

    def get(self, node_id: str) -> Node:
        return self.get_by_id(node_id)

    def get_owned(self, owner_id: str, node_id: str) -> Node:
        """Node owned by *owner_id*, trashed or not. Raises NodeNotFoundError."""
        node = (
            self.db.query(Node)
            .filter(Node.id == node_id, Node.owner_id == owner_id)
            .first()
        )
        if not node:
            raise NodeNotFoundError(node_id)
        return node

    def get_accessible(self, user_id: str, node_id: str) -> Node:
        """Node the user owns or has been shared. Raises NodeNotFoundError."""
        node = (
            self.db.query(Node)
            .filter(
                Node.id == node_id,
                or_(
                    Node.owner_id == user_id,
                    Node.shares.any(NodeShare.user_id == user_id),
                ),
            )
            .first()
        )
        if not node:
            raise NodeNotFoundError(node_id)
        return node

    def find_by_parent(
        self,
        owner_id: str,
        parent_id: Optional[str],
        node_type: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "updated_at",
        order: str = "desc",
    ) -> List[Node]:
        """Non-trashed children of *parent_id* (None = root) for one owner."""
        query = self.db.query(Node).filter(
            Node.owner_id == owner_id,
            Node.in_trash.is_(False),
            self._parent_filter(parent_id),
        )
        if node_type and node_type != "all":
            query = query.filter(Node.type == node_type)
        if search:
            query = query.filter(Node.name.ilike(f"%{_escape_like(search)}%", escape="\\"))

        column = SORT_COLUMNS.get(sort, Node.updated_at)
        ordering = column.asc() if order == "asc" else column.desc()
        return query.order_by(ordering, Node.id.asc()).all()

    def find_folder_by_name(self, owner_id: str, parent_id: Optional[str], name: str) -> Optional[Node]:
        """Non-trashed folder named *name* directly under *parent_id*."""
        return (
            self.db.query(Node)
            .filter(
                Node.owner_id == owner_id,
                Node.is_folder.is_(True),
                Node.in_trash.is_(False),
                Node.name == name,
                self._parent_filter(parent_id),
            )
            .order_by(Node.created_at.asc())
            .first()
        )

    def find_any_folder_by_name(self, owner_id: str, name: str) -> Optional[Node]:
        """First non-trashed folder with this name anywhere in the owner's tree."""
        return (
            self.db.query(Node)
            .filter(
                Node.owner_id == owner_id,
                Node.is_folder.is_(True),
                Node.in_trash.is_(False),
                Node.name == name,
            )
            .order_by(Node.created_at.asc(), Node.id.asc())
            .first()
        )

    def find_duplicate(
        self, owner_id: str, original_name: str, size: int, parent_id: Optional[str]
    ) -> Optional[Node]:
        """Non-trashed file with the same original name and size in the same folder."""
        return (
            self.db.query(Node)
            .filter(
                Node.owner_id == owner_id,
                Node.is_folder.is_(False),
                Node.in_trash.is_(False),
                Node.original_name == original_name,
                Node.size == size,
                self._parent_filter(parent_id),
            )
            .order_by(Node.created_at.asc())
            .first()
        )

    def owned_nodes(self, owner_id: str) -> List[Node]:
        """Non-trashed nodes of one owner."""
        return (
            self.db.query(Node)
            .filter(Node.owner_id == owner_id, Node.in_trash.is_(False))
            .all()
        )

    def used_bytes(self, owner_id: str) -> int:
        """Live sum of non-trashed file sizes."""
        total = (
            self.db.query(func.coalesce(func.sum(Node.size), 0))
            .filter(
                Node.owner_id == owner_id,
                Node.is_folder.is_(False),
                Node.in_trash.is_(False),
            )
            .scalar()
        )
        return int(total or 0)

    def update(self, node: Node, **fields) -> Node:
        for key, value in fields.items():
            setattr(node, key, value)
        node.updated_at = utcnow()
        self.db.flush()
        return node

    def delete(self, node: Node) -> None:
        """Hard delete one node (share rows go with it)."""
        self.db.delete(node)
        self.db.flush()

    def list_trash(self, owner_id: str) -> List[Node]:
        """Trashed nodes of one owner, most recently deleted first."""
        return (
            self.db.query(Node)
            .filter(Node.owner_id == owner_id, Node.in_trash.is_(True))
            .order_by(Node.deleted_at.desc(), Node.id.asc())
            .all()
        )

    def list_expired_trash(self, now: Optional[datetime] = None) -> List[Node]:
        """Trashed nodes across all accounts whose retention has run out."""
        cutoff = now or utcnow()
        return (
            self.db.query(Node)
            .filter(
                Node.in_trash.is_(True),
                Node.permanent_delete_at.isnot(None),
                Node.permanent_delete_at <= cutoff,
            )
            .order_by(Node.permanent_delete_at.asc())
            .all()
        )

    def list_shared_with(self, user_id: str) -> List[Tuple[Node, NodeShare]]:
        """Non-trashed nodes shared with *user_id*, newest share first."""
        return (
            self.db.query(Node, NodeShare)
            .join(NodeShare, NodeShare.node_id == Node.id)
            .filter(NodeShare.user_id == user_id, Node.in_trash.is_(False))
            .order_by(NodeShare.shared_at.desc(), NodeShare.id.desc())
            .all()
        )

    def get_by_public_token(self, token: str) -> Optional[Node]:
        return (
            self.db.query(Node)
            .filter(Node.public_url == token, Node.is_public.is_(True))
            .first()
        )

    def count_path_references(self, path: str) -> int:
        """Number of nodes pointing at content key *path*."""
        count = self.db.query(func.count(Node.id)).filter(Node.path == path).scalar()
        return int(count or 0)

    def children_of(self, node_id: str) -> List[Node]:
        """Direct children regardless of trash state."""
        return self.db.query(Node).filter(Node.parent_id == node_id).all()

    def parent_id_of(self, node_id: str) -> Tuple[bool, Optional[str]]:
        """(exists, parent_id) for one node without loading the full row."""
        row = self.db.query(Node.parent_id).filter(Node.id == node_id).first()
        if row is None:
            return False, None
        return True, row[0]

    # Shares

    def get_share(self, node_id: str, user_id: str) -> Optional[NodeShare]:
        return (
            self.db.query(NodeShare)
            .filter(NodeShare.node_id == node_id, NodeShare.user_id == user_id)
            .first()
        )

    def add_share(self, node: Node, user_id: str, permission: str) -> NodeShare:
        share = NodeShare(node_id=node.id, user_id=user_id, permission=permission)
        node.shares.append(share)
        self.db.flush()
        return share

    def remove_share(self, node: Node, share: NodeShare) -> None:
        node.shares.remove(share)
        self.db.flush()
