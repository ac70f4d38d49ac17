"""Node schemas: listings, tree edits, uploads."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List


def _normalize_folder_id(v: Optional[str]) -> Optional[str]:
    """Clients send "", "root" or null for the root folder."""
    if v is None:
        return None
    v = v.strip()
    if v in ("", "root", "null"):
        return None
    return v


class ShareEntry(BaseModel):
    """One recipient of a direct share."""
    user_id: str
    permission: str
    shared_at: datetime

    class Config:
        from_attributes = True


class NodeResponse(BaseModel):
    """File or folder as returned to its owner or a recipient."""
    id: str
    owner_id: str
    name: str
    original_name: Optional[str] = None
    is_folder: bool
    type: str
    mime_type: Optional[str] = None
    size: int
    parent_id: Optional[str] = None
    in_trash: bool = False
    deleted_at: Optional[datetime] = None
    permanent_delete_at: Optional[datetime] = None
    is_public: bool = False
    download_url: Optional[str] = None
    shared_with: List[ShareEntry] = Field(default_factory=list, validation_alias="shares")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class FolderCreate(BaseModel):
    """Request to create a folder. parent_id null means root."""
    name: str
    parent_id: Optional[str] = None

    @field_validator('parent_id')
    @classmethod
    def normalize_parent(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_folder_id(v)


class RenameRequest(BaseModel):
    name: str


class MoveRequest(BaseModel):
    """Move target by id, or by folder name when no id is given."""
    target_folder_id: Optional[str] = None
    target_folder_name: Optional[str] = None

    @field_validator('target_folder_id')
    @classmethod
    def normalize_target(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_folder_id(v)


class CopyRequest(BaseModel):
    target_folder_id: Optional[str] = None

    @field_validator('target_folder_id')
    @classmethod
    def normalize_target(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_folder_id(v)


class UploadResponse(BaseModel):
    """Result of a single upload; duplicate=True means an existing node was reused."""
    file: NodeResponse
    duplicate: bool = False
    message: str


class BatchUploadResponse(BaseModel):
    files: List[NodeResponse]
    folders_created: int
    total_bytes: int
    skipped_duplicates: int
    message: str


class DeleteResponse(BaseModel):
    removed: int
    message: str


class EmptyTrashResponse(BaseModel):
    deleted_count: int
    message: str
