"""API routes."""

from .files import router as files_router

__all__ = [
    "files_router",
]
