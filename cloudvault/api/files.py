"""File API: listings, folders, uploads, sharing, trash and downloads.

Single router under /api/files. Each endpoint resolves the caller from the
identity header and delegates to one service; services raise VaultException
subclasses which the app-level handler turns into JSON errors.

Static paths (/recent, /shared, /trash, ...) are registered before the
/{node_id}/... routes.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..core.config import settings
from ..database import get_db
from ..exceptions import ValidationError
from ..schemas import (
    ActivityEntry,
    BatchUploadResponse,
    CopyRequest,
    DeleteResponse,
    EmptyTrashResponse,
    FolderCreate,
    MoveRequest,
    NodeResponse,
    PublicLinkResponse,
    RenameRequest,
    SharedNodeResponse,
    ShareRequest,
    ShareResponse,
    StorageOverview,
    UploadResponse,
)
from ..services import activity_service
from ..services.download_service import Download, DownloadService
from ..services.hierarchy_service import HierarchyService
from ..services.quota_service import QuotaLedger
from ..services.share_service import ShareManager
from ..services.upload_service import UploadCoordinator, UploadItem
from ..storage import ContentStore, get_content_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


def _folder_param(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() in ("", "root", "null"):
        return None
    return value.strip()


def _stream(download: Download) -> StreamingResponse:
    filename = download.filename
    return StreamingResponse(
        download.chunks,
        media_type=download.node.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


# -- Listings -------------------------------------------------------------

@router.get("/", response_model=List[NodeResponse])
def list_files(
    folder: Optional[str] = Query(None, description="Folder id; omitted or 'root' for the root"),
    type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: str = Query("updated_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    """List the non-trashed children of one folder."""
    service = HierarchyService(db, store)
    return service.list_folder(
        auth.user_id, _folder_param(folder), node_type=type, search=search, sort=sort, order=order,
    )


@router.post("/folders", response_model=NodeResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    service = HierarchyService(db, store)
    return service.create_folder(auth.user_id, data.name, data.parent_id)


# -- Uploads --------------------------------------------------------------

@router.post("/upload", response_model=UploadResponse, status_code=201)
def upload_file(
    response: Response,
    file: UploadFile = File(...),
    parent_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    """Upload one file. Re-uploading an identical file returns the existing node."""
    coordinator = UploadCoordinator(db, store)
    result = coordinator.upload(
        auth.user_id,
        file.file,
        file.filename or "",
        content_type=file.content_type,
        parent_id=_folder_param(parent_id),
        declared_size=getattr(file, "size", None),
    )
    if result.duplicate:
        response.status_code = 200
        message = "File already exists; existing file returned"
    else:
        message = "File uploaded successfully"
    return UploadResponse(
        file=NodeResponse.model_validate(result.node),
        duplicate=result.duplicate,
        message=message,
    )


@router.post("/upload-multiple", response_model=BatchUploadResponse, status_code=201)
def upload_multiple(
    files: List[UploadFile] = File(...),
    file_paths: Optional[List[str]] = Form(None),
    parent_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    """Upload several files; ``file_paths`` (aligned with ``files``) recreates folders."""
    paths = file_paths or []
    if paths and len(paths) != len(files):
        raise ValidationError("file_paths must have one entry per file", field="file_paths")

    items = [
        UploadItem(
            stream=upload.file,
            original_name=upload.filename or "",
            content_type=upload.content_type,
            declared_size=getattr(upload, "size", None),
            relative_path=paths[i] if paths else None,
        )
        for i, upload in enumerate(files)
    ]
    coordinator = UploadCoordinator(db, store)
    result = coordinator.upload_batch(auth.user_id, items, _folder_param(parent_id))
    return BatchUploadResponse(
        files=[NodeResponse.model_validate(n) for n in result.nodes],
        folders_created=result.folders_created,
        total_bytes=result.total_bytes,
        skipped_duplicates=result.skipped_duplicates,
        message=f"{len(result.nodes) - result.skipped_duplicates} file(s) uploaded",
    )


# -- Feeds and views ------------------------------------------------------

@router.get("/recent", response_model=List[ActivityEntry])
def recent_activity(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return activity_service.recent_feed(db, auth.user_id, limit=limit)


@router.get("/shared", response_model=List[SharedNodeResponse])
def shared_with_me(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Nodes other accounts have shared with the caller."""
    manager = ShareManager(db)
    return [
        SharedNodeResponse(
            file=NodeResponse.model_validate(node),
            owner_id=node.owner_id,
            permission=share.permission,
            shared_at=share.shared_at,
        )
        for node, share in manager.list_shared_with(auth.user_id)
    ]


@router.get("/trash", response_model=List[NodeResponse])
def list_trash(
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    return HierarchyService(db, store).list_trash(auth.user_id)


@router.delete("/trash/empty", response_model=EmptyTrashResponse)
def empty_trash(
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    count = HierarchyService(db, store).empty_trash(auth.user_id)
    return EmptyTrashResponse(deleted_count=count, message=f"Trash emptied ({count} items)")


@router.get("/storage/overview", response_model=StorageOverview)
def storage_overview(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return QuotaLedger(db).overview(auth.user_id)


# -- Public links (no identity required) ----------------------------------

@router.get("/public/{token}")
def public_download(
    token: str,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
):
    download = DownloadService(db, store).open_public(token)
    return _stream(download)


# -- Single node ----------------------------------------------------------

@router.get("/{node_id}/info", response_model=NodeResponse)
def node_info(
    node_id: str,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    return HierarchyService(db, store).get_info(auth.user_id, node_id)


@router.patch("/{node_id}/rename", response_model=NodeResponse)
def rename_node(
    node_id: str,
    data: RenameRequest,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    return HierarchyService(db, store).rename(auth.user_id, node_id, data.name)


@router.post("/{node_id}/move", response_model=NodeResponse)
def move_node(
    node_id: str,
    data: MoveRequest,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    service = HierarchyService(db, store)
    target = data.target_folder_id
    if target is None and data.target_folder_name:
        target = service.resolve_folder_name(auth.user_id, data.target_folder_name.strip())
    return service.move(auth.user_id, node_id, target)


@router.post("/{node_id}/copy", response_model=NodeResponse, status_code=201)
def copy_node(
    node_id: str,
    data: CopyRequest,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    return HierarchyService(db, store).copy(auth.user_id, node_id, data.target_folder_id)


@router.get("/{node_id}/download")
def download_node(
    node_id: str,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    download = DownloadService(db, store).open_for_user(auth.user_id, node_id)
    return _stream(download)


# -- Sharing --------------------------------------------------------------

@router.post("/{node_id}/share", response_model=ShareResponse, status_code=201)
def share_node(
    node_id: str,
    data: ShareRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    share = ShareManager(db).share(auth.user_id, node_id, data.user_id, data.permission)
    return ShareResponse(
        node_id=node_id,
        user_id=share.user_id,
        permission=share.permission,
        shared_at=share.shared_at,
    )


@router.delete("/{node_id}/share/{user_id}", status_code=204)
def unshare_node(
    node_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    ShareManager(db).unshare(auth.user_id, node_id, user_id)
    return Response(status_code=204)


@router.post("/{node_id}/remove-share", status_code=204)
def remove_share(
    node_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Recipient removes a node from their shared view."""
    ShareManager(db).remove_share(auth.user_id, node_id)
    return Response(status_code=204)


@router.post("/{node_id}/share-link", response_model=PublicLinkResponse)
def create_share_link(
    node_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    token = ShareManager(db).create_public_link(auth.user_id, node_id)
    return PublicLinkResponse(token=token, url=settings.public_link(token))


@router.post("/{node_id}/revoke-link", response_model=NodeResponse)
def revoke_share_link(
    node_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return ShareManager(db).revoke_public_link(auth.user_id, node_id)


# -- Trash lifecycle ------------------------------------------------------

@router.post("/{node_id}/trash", response_model=NodeResponse)
def trash_node(
    node_id: str,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    return HierarchyService(db, store).trash(auth.user_id, node_id)


@router.post("/{node_id}/restore", response_model=NodeResponse)
def restore_node(
    node_id: str,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    return HierarchyService(db, store).restore(auth.user_id, node_id)


@router.delete("/{node_id}", response_model=DeleteResponse)
def delete_node(
    node_id: str,
    db: Session = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    auth: AuthContext = Depends(require_auth),
):
    """Permanently delete a node (and everything under a folder)."""
    removed = HierarchyService(db, store).permanent_delete(auth.user_id, node_id)
    return DeleteResponse(removed=removed, message="File permanently deleted")
