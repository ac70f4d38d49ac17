"""Activity recorder: append-only event log and the "recent" feed.

Usage in the service layer:
    activity_service.record(db, "rename", user_id="u1", file_id=node.id,
                            file_name=node.name, details={"oldName": "a", "newName": "b"})

record() commits on its own session, so callers commit their primary
change first.
"""

import logging
from datetime import datetime
from typing import Optional

import sqlalchemy.exc
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.timeutil import as_utc
from ..models import Activity, Node
from ..models.activity import ACTIVITY_TYPES

logger = logging.getLogger(__name__)

_DESCRIPTIONS = {
    "upload": "You uploaded {name}",
    "upload_skipped_duplicate": "Skipped duplicate upload of {name}",
    "download": "You downloaded {name}",
    "download_public": "{name} was downloaded through a public link",
    "share": "You shared {name} with {target}",
    "share_link": "You {action} a public link for {name}",
    "rename": "You renamed a file to {name}",
    "move": "You moved {name}",
    "copy": "You copied {name}",
    "delete": "You deleted {name}",
    "restore": "You restored {name}",
    "create_folder": "You created folder {name}",
    "permanent_delete": "You permanently deleted {name}",
    "empty_trash": "You emptied trash ({count} files)",
    "relink": "{name} was relinked to a new file",
    "modified": "Modified {name}",
}

_ICONS = {
    "upload": "file_upload",
    "download": "download",
    "download_public": "download",
    "share": "share",
    "share_link": "link",
    "rename": "drive_file_rename_outline",
    "move": "drive_file_move",
    "delete": "delete",
    "restore": "restore",
    "create_folder": "create_new_folder",
    "copy": "content_copy",
    "permanent_delete": "delete_forever",
    "empty_trash": "delete_sweep",
    "modified": "drive_file_rename_outline",
}


def record(
    db: Session,
    activity_type: str,
    user_id: Optional[str],
    file_id: Optional[str] = None,
    file_name: Optional[str] = None,
    target_user_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> None:
    """Append an activity entry. Never raises; failures are logged and rolled back."""
    if activity_type not in ACTIVITY_TYPES:
        logger.warning("Recording unknown activity type %s", activity_type)
    try:
        entry = Activity(
            type=activity_type,
            user_id=user_id,
            file_id=file_id,
            file_name=file_name,
            target_user_id=target_user_id,
            details={k: str(v) for k, v in details.items()} if details else None,
        )
        db.add(entry)
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to record activity %s: %s", activity_type, e)
        db.rollback()


def describe(activity_type: str, file_name: Optional[str], target_user_id: Optional[str] = None,
             details: Optional[dict] = None) -> str:
    """Human-readable sentence for one feed entry."""
    details = details or {}
    template = _DESCRIPTIONS.get(activity_type)
    name = file_name or "a file"
    if template is None:
        return f"You performed {activity_type} on {name}"
    if activity_type == "share" and details.get("action") == "removed_by_recipient":
        return f"You removed {name} from your shared files"
    return template.format(
        name=name,
        target=target_user_id or "another user",
        action=details.get("action", "updated"),
        count=details.get("count", "multiple"),
    )


def icon_for(activity_type: str) -> str:
    return _ICONS.get(activity_type, "description")


def get_by_user(db: Session, user_id: str, limit: int = 100) -> list[Activity]:
    """Most recent activity entries for one user."""
    return (
        db.query(Activity)
        .filter(Activity.user_id == user_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )


def recent_feed(db: Session, user_id: str, limit: int = 20) -> list[dict]:
    """The user's activities merged with synthetic "modified" entries.

    A non-trashed owned node gets a "modified" entry when its updated_at is
    newer than the latest activity recorded for it (or it has none).
    """
    entries: list[dict] = []
    for activity in get_by_user(db, user_id, limit=limit):
        entries.append({
            "id": str(activity.id),
            "type": activity.type,
            "file_id": activity.file_id,
            "file_name": activity.file_name,
            "description": describe(activity.type, activity.file_name,
                                    activity.target_user_id, activity.details),
            "icon": icon_for(activity.type),
            "timestamp": as_utc(activity.created_at),
        })

    latest_rows = (
        db.query(Activity.file_id, func.max(Activity.created_at))
        .filter(Activity.user_id == user_id, Activity.file_id.isnot(None))
        .group_by(Activity.file_id)
        .all()
    )
    latest: dict[str, datetime] = {fid: as_utc(ts) for fid, ts in latest_rows}

    recent_nodes = (
        db.query(Node)
        .filter(Node.owner_id == user_id, Node.in_trash.is_(False))
        .order_by(Node.updated_at.desc())
        .limit(max(50, limit * 2))
        .all()
    )
    for node in recent_nodes:
        updated = as_utc(node.updated_at)
        last_seen = latest.get(node.id)
        if updated is not None and (last_seen is None or updated > last_seen):
            entries.append({
                "id": f"file_{node.id}",
                "type": "modified",
                "file_id": node.id,
                "file_name": node.name,
                "description": describe("modified", node.name),
                "icon": icon_for("modified"),
                "timestamp": updated,
            })

    entries.sort(key=lambda e: e["timestamp"], reverse=True)
    return entries[:limit]
