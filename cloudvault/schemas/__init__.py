"""Pydantic schemas for API validation."""

from .node import (
    NodeResponse,
    ShareEntry,
    FolderCreate,
    RenameRequest,
    MoveRequest,
    CopyRequest,
    UploadResponse,
    BatchUploadResponse,
    DeleteResponse,
    EmptyTrashResponse,
)
from .share import ShareRequest, ShareResponse, SharedNodeResponse, PublicLinkResponse
from .quota import StorageOverview
from .activity import ActivityEntry

__all__ = [
    "NodeResponse",
    "ShareEntry",
    "FolderCreate",
    "RenameRequest",
    "MoveRequest",
    "CopyRequest",
    "UploadResponse",
    "BatchUploadResponse",
    "DeleteResponse",
    "EmptyTrashResponse",
    "ShareRequest",
    "ShareResponse",
    "SharedNodeResponse",
    "PublicLinkResponse",
    "StorageOverview",
    "ActivityEntry",
]
