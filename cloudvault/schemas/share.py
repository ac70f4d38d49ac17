"""Share and public-link schemas."""

from pydantic import BaseModel, field_validator
from datetime import datetime

from .node import NodeResponse


class ShareRequest(BaseModel):
    """Grant another account access to a node."""
    user_id: str
    permission: str = "view"

    @field_validator('user_id')
    @classmethod
    def strip_user_id(cls, v: str) -> str:
        return v.strip()


class ShareResponse(BaseModel):
    node_id: str
    user_id: str
    permission: str
    shared_at: datetime


class SharedNodeResponse(BaseModel):
    """A node shared with the caller, with the grant that exposes it."""
    file: NodeResponse
    owner_id: str
    permission: str
    shared_at: datetime


class PublicLinkResponse(BaseModel):
    token: str
    url: str
