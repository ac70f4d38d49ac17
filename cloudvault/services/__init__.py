"""Business logic services."""

from .hierarchy_service import HierarchyService
from .upload_service import UploadCoordinator
from .quota_service import QuotaLedger
from .share_service import ShareManager
from .reconciler import PathReconciler
from .download_service import DownloadService

__all__ = [
    "HierarchyService",
    "UploadCoordinator",
    "QuotaLedger",
    "ShareManager",
    "PathReconciler",
    "DownloadService",
]
