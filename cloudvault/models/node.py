"""Node and NodeShare models.

A node is either a file or a folder in an account's tree. Files point at
an object in the content store through ``path``; folders never do.
"""

import uuid
from typing import Optional

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.timeutil import utcnow
from ..database import Base

FOLDER_TYPE = "folder"


def new_node_id() -> str:
    return uuid.uuid4().hex


class Node(Base):
    """File or folder owned by one account.

    Soft-delete state (``in_trash``, ``deleted_at``, ``permanent_delete_at``)
    is set on the node itself only; children of a trashed folder keep their
    own flags.
    """

    __tablename__ = "nodes"
    __table_args__ = (
        Index("ix_nodes_owner_parent", "owner_id", "parent_id"),
        Index("ix_nodes_owner_trash", "owner_id", "in_trash"),
        Index("ix_nodes_path", "path"),
        Index("ix_nodes_permanent_delete_at", "permanent_delete_at"),
    )

    id = Column(String(32), primary_key=True, default=new_node_id)
    owner_id = Column(String(50), nullable=False)

    name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=True)  # as uploaded, never renamed
    is_folder = Column(Boolean, nullable=False, default=False)
    type = Column(String(20), nullable=False, default="document")
    mime_type = Column(String(255), nullable=True)
    size = Column(BigInteger, nullable=False, default=0)

    # Content-store key; NULL for folders. May go stale, see PathReconciler.
    path = Column(Text, nullable=True)

    parent_id = Column(String(32), ForeignKey("nodes.id"), nullable=True)

    # Trash
    in_trash = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    permanent_delete_at = Column(DateTime(timezone=True), nullable=True)

    # Public link (token is only set while is_public is true)
    is_public = Column(Boolean, nullable=False, default=False)
    public_url = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    shares = relationship(
        "NodeShare",
        back_populates="node",
        cascade="all, delete-orphan",
        order_by="NodeShare.id",
    )

    @property
    def download_url(self) -> Optional[str]:
        """Relative download route; folders have none."""
        if self.is_folder:
            return None
        return f"/api/files/{self.id}/download"


class NodeShare(Base):
    """Direct share of a node with another account."""

    __tablename__ = "node_shares"
    __table_args__ = (
        UniqueConstraint("node_id", "user_id", name="uq_node_shares_node_user"),
        Index("ix_node_shares_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    node_id = Column(String(32), ForeignKey("nodes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(50), nullable=False)
    permission = Column(String(10), nullable=False, default="view")  # view | edit
    shared_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    node = relationship("Node", back_populates="shares")
