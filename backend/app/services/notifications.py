"""
Notification service: create rows (honoring per-user preferences), list, mark read.

create_notification is the single write path for every notification kind; delivery and
rendering are downstream.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference

logger = logging.getLogger(__name__)

# Notification.type -> NotificationPreference toggle
_PREFERENCE_FIELDS = {
    "MENTION": "mention_enabled",
    "MESSAGE": "message_enabled",
    "ACTIVITY_UPDATE": "activity_enabled",
    "NUDGE": "nudge_enabled",
}


def notification_type_enabled(db: Session, user_id: str, type: str) -> bool:
    """No preference row, or a type without a toggle, means enabled."""
    field = _PREFERENCE_FIELDS.get(type)
    if field is None:
        return True
    prefs = db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()
    if prefs is None:
        return True
    return getattr(prefs, field) is not False


def create_notification(
    db: Session,
    user_id: str,
    type: str,
    title: str,
    content: str,
    link: str | None = None,
    metadata: dict[str, Any] | None = None,
    created_at: datetime | None = None,
) -> Notification | None:
    """
    Add a notification row (flushed, not committed; caller owns the transaction).
    Returns None when the user's preferences disable this notification type.
    """
    if not notification_type_enabled(db, user_id, type):
        logger.debug("Notification %s for user %s suppressed by preferences", type, user_id)
        return None
    row = Notification(
        user_id=user_id,
        type=type,
        title=title,
        content=content,
        link=link,
        payload=metadata or {},
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(row)
    db.flush()
    return row


def serialize_notification(row: Notification) -> dict[str, Any]:
    return {
        "id": row.id,
        "type": row.type,
        "title": row.title,
        "content": row.content,
        "link": row.link,
        "read": row.read_at is not None,
        "read_at": row.read_at.isoformat() if row.read_at else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "metadata": row.payload or {},
    }


def list_notifications(
    db: Session,
    user_id: str,
    limit: int = 20,
    unread_only: bool = False,
    type: str | None = None,
) -> list[Notification]:
    """Newest first."""
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read_at.is_(None))
    if type:
        q = q.filter(Notification.type == type)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .count()
    )


def mark_read(db: Session, user_id: str, notification_id: int) -> Notification | None:
    row = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if row is None:
        return None
    if row.read_at is None:
        row.read_at = datetime.now(timezone.utc)
        db.commit()
    return row


def mark_all_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .update({Notification.read_at: datetime.now(timezone.utc)}, synchronize_session=False)
    )
    db.commit()
    return updated
