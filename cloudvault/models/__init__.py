"""Database models."""

from .node import Node, NodeShare
from .storage_stats import StorageStats
from .activity import Activity

__all__ = [
    "Node", "NodeShare",
    "StorageStats",
    "Activity",
]
