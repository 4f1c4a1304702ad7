"""
User notifications API: list with unread count, mark one read, mark all read.

Recipient identified by X-User-Id header or ?user_id=. Rows are created by the nudge engine
and other flows through app.services.notifications.create_notification.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services import notifications as notification_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _user_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    user_id: str | None = Query(None),
) -> str:
    uid = (x_user_id or user_id or "").strip()
    if not uid:
        raise HTTPException(status_code=400, detail="X-User-Id header or user_id query param required")
    return uid


# --- List ---


@router.get("/notifications")
def list_notifications(
    db: Session = Depends(get_db),
    user_id: str = Depends(_user_id),
    limit: int = Query(20, ge=1, le=200),
    unread_only: bool = Query(False),
    type: str | None = Query(None, description="Filter by kind, e.g. NUDGE"),
) -> dict[str, Any]:
    """
    List notifications for the user, newest first.
    Use unread_only=true for the badge / unread view; type=NUDGE for the nudge cards.
    """
    rows = notification_service.list_notifications(db, user_id, limit=limit, unread_only=unread_only, type=type)
    return {
        "notifications": [notification_service.serialize_notification(r) for r in rows],
        "unread_count": notification_service.unread_count(db, user_id),
    }


# --- Mark one read ---


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(_user_id),
) -> dict[str, Any]:
    """Mark a single notification as read (persisted)."""
    row = notification_service.mark_read(db, user_id, notification_id)
    if row is None:
        return {"ok": False, "error": "not_found"}
    return {"ok": True, "id": notification_id, "read_at": row.read_at.isoformat()}


# --- Mark all read ---


@router.post("/notifications/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    user_id: str = Depends(_user_id),
) -> dict[str, Any]:
    """Mark all notifications for the user as read (e.g. 'Clear all' in UI)."""
    updated = notification_service.mark_all_read(db, user_id)
    return {"ok": True, "user_id": user_id, "marked_count": updated}
