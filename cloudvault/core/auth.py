"""Authentication seam: FastAPI dependencies resolving the caller.

Sessions and passwords are handled by an upstream gateway, which forwards
the authenticated account id in a trusted header (``settings.identity_header``,
``X-User-Id`` by default). This module only reads it.

Public interface:
    ``require_auth``: returns AuthContext or raises 401.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .config import settings
from ..exceptions import AuthenticationError


# Matches the length of owner_id / user_id columns.
MAX_USER_ID_LENGTH = 50


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity available to every endpoint."""

    user_id: str


def _read_identity(request: Request) -> Optional[str]:
    value = (request.headers.get(settings.identity_header) or "").strip()
    if not value:
        return None
    if len(value) > MAX_USER_ID_LENGTH or value in (".", "..") or "/" in value or "\\" in value:
        # The id doubles as the content-store area name.
        raise AuthenticationError("Malformed user identity")
    return value


def require_auth(request: Request) -> AuthContext:
    """Require an identity header and return the caller's AuthContext."""
    user_id = _read_identity(request)
    if user_id is None:
        raise AuthenticationError()
    return AuthContext(user_id=user_id)

