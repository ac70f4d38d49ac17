"""Content stores holding the bytes behind file nodes."""

from .content_store import ContentEntry, ContentStore, LocalContentStore, get_content_store

__all__ = ["ContentEntry", "ContentStore", "LocalContentStore", "get_content_store"]
