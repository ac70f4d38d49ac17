"""Data access repositories."""

from .base import BaseRepository
from .node_repository import NodeRepository

__all__ = [
    "BaseRepository",
    "NodeRepository",
]
