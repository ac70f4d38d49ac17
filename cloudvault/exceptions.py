"""Custom exception hierarchy for CloudVault."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Node errors
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    INVALID_PARENT = "INVALID_PARENT"
    FOLDER_NAME_CONFLICT = "FOLDER_NAME_CONFLICT"

    # Hierarchy errors
    SELF_MOVE = "SELF_MOVE"
    CIRCULAR_MOVE = "CIRCULAR_MOVE"

    # Storage errors
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONTENT_MISSING = "CONTENT_MISSING"
    CONTENT_KEY_NOT_FOUND = "CONTENT_KEY_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Invariant violations (bugs, not user errors)
    INTEGRITY_ERROR = "INTEGRITY_ERROR"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Generic errors
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VaultException(Exception):
    """
    Base exception for all CloudVault errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class ValidationError(VaultException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class NotFoundError(VaultException):
    """A node, folder, or target could not be found for the caller."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.NOT_FOUND,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, status_code=404, details=details)


class NodeNotFoundError(NotFoundError):
    """Node does not exist or is not visible to the caller."""

    def __init__(self, node_id: str):
        super().__init__(
            f"Node not found: {node_id}",
            ErrorCode.NODE_NOT_FOUND,
            details={"node_id": node_id}
        )


class FolderNotFoundError(NotFoundError):
    """Target folder does not exist, is trashed, or belongs to someone else."""

    def __init__(self, folder_id: str):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            details={"folder_id": folder_id}
        )


class ContentKeyNotFoundError(NotFoundError):
    """Content store has no object under the requested key."""

    def __init__(self, key: str):
        super().__init__(
            f"Content key not found: {key}",
            ErrorCode.CONTENT_KEY_NOT_FOUND,
            details={"key": key}
        )


class ConflictError(VaultException):
    """Operation conflicts with existing state (duplicate folder, existing share)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details=details
        )


class FolderNameConflictError(ConflictError):
    """A non-trashed folder with this name already exists under the parent."""

    def __init__(self, name: str, parent_id: Optional[str]):
        super().__init__(
            "A folder with this name already exists in this location",
            details={"name": name, "parent_id": parent_id or "root"}
        )
        self.error_code = ErrorCode.FOLDER_NAME_CONFLICT


class QuotaExceededError(VaultException):
    """Accepting the incoming bytes would exceed the account's storage ceiling."""

    def __init__(self, used: int, incoming: int, quota: int):
        super().__init__(
            "Storage limit exceeded. Free up space before uploading more files.",
            ErrorCode.QUOTA_EXCEEDED,
            status_code=413,
            details={"used": used, "incoming": incoming, "quota": quota}
        )


class InvalidParentError(VaultException):
    """Upload or folder target is not an owned, non-trashed folder."""

    def __init__(self, parent_id: str):
        super().__init__(
            "Parent folder not found or access denied",
            ErrorCode.INVALID_PARENT,
            status_code=400,
            details={"parent_id": parent_id}
        )


class SelfMoveError(VaultException):
    """Cannot move a node into itself."""

    def __init__(self, node_id: str):
        super().__init__(
            f"Cannot move node into itself: {node_id}",
            ErrorCode.SELF_MOVE,
            status_code=400,
            details={"node_id": node_id}
        )


class CycleError(VaultException):
    """Moving this folder would place it inside its own subtree."""

    def __init__(self, node_id: str, target_id: str):
        super().__init__(
            f"Cannot move folder into its own subfolder: {node_id} -> {target_id}",
            ErrorCode.CIRCULAR_MOVE,
            status_code=400,
            details={"node_id": node_id, "target_id": target_id}
        )


class ContentMissingError(VaultException):
    """Node exists in the database but its bytes cannot be located."""

    def __init__(self, node_id: str):
        super().__init__(
            "File found in database but not in the content store",
            ErrorCode.CONTENT_MISSING,
            status_code=404,
            details={"node_id": node_id}
        )


class IntegrityError(VaultException):
    """A data invariant is violated. Signals a bug rather than bad input."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.INTEGRITY_ERROR,
            status_code=500,
            details=details
        )


class AuthenticationError(VaultException):
    """Request lacks an authenticated account identity."""

    def __init__(self, message: str = "Missing authenticated user identity"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(VaultException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )
