"""Storage overview schema."""

from pydantic import BaseModel
from datetime import datetime
from typing import Dict


class StorageOverview(BaseModel):
    """Usage snapshot for one account. Byte counts exclude trashed nodes."""
    used_storage: int
    total_files: int
    total_folders: int
    file_type_breakdown: Dict[str, int]
    last_calculated: datetime
    quota_bytes: int
    remaining: int
