"""Activity feed schema."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ActivityEntry(BaseModel):
    id: str
    type: str
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    description: str
    icon: str
    timestamp: datetime
