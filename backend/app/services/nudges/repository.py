"""
Read-side queries for the nudge engine.

All grouping/joins the detectors and the eligibility gate need live here as explicit
aggregate methods, so detectors stay read-then-filter and never build queries themselves.
Email joins are case-insensitive (LOWER on both sides); soft-deleted users never resolve.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from app.core.constants import NUDGE_NOTIFICATION_TYPE
from app.models.event_attendance import EventAttendance
from app.models.event_submission import STATUS_APPROVED, EventSubmission
from app.models.notification import Notification
from app.models.user import User
from app.services.notifications import notification_type_enabled


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class InactiveUser:
    id: str
    name: str | None
    email: str
    last_attendance: datetime


@dataclass(frozen=True)
class Regular:
    email: str
    name: str | None
    attended: int


class NudgeRepository:
    """Aggregate queries over users, event submissions, attendances and notifications."""

    def __init__(self, db: Session):
        self.db = db

    # --- Events ---

    def get_event(self, event_id: str) -> EventSubmission | None:
        return self.db.query(EventSubmission).filter(EventSubmission.id == event_id).first()

    def other_approved_event_ids(self, organizer: str, exclude_event_id: str) -> list[str]:
        """Every other APPROVED event by the organizer handle, regardless of date."""
        rows = (
            self.db.query(EventSubmission.id)
            .filter(
                EventSubmission.organizer_instagram == organizer,
                EventSubmission.status == STATUS_APPROVED,
                EventSubmission.id != exclude_event_id,
            )
            .all()
        )
        return [r.id for r in rows]

    def past_event_ids(
        self,
        organizer: str,
        before: datetime,
        exclude_event_id: str,
        limit: int | None = None,
    ) -> list[str]:
        """APPROVED events by the organizer that already happened, most recent first."""
        q = (
            self.db.query(EventSubmission.id)
            .filter(
                EventSubmission.organizer_instagram == organizer,
                EventSubmission.status == STATUS_APPROVED,
                EventSubmission.event_date < before,
                EventSubmission.id != exclude_event_id,
            )
            .order_by(EventSubmission.event_date.desc(), EventSubmission.id)
        )
        if limit is not None:
            q = q.limit(limit)
        return [r.id for r in q.all()]

    def approved_events_between(self, start: datetime, end: datetime | None = None) -> list[EventSubmission]:
        """APPROVED events with start <= event_date (<= end when given)."""
        q = self.db.query(EventSubmission).filter(
            EventSubmission.status == STATUS_APPROVED,
            EventSubmission.event_date >= start,
        )
        if end is not None:
            q = q.filter(EventSubmission.event_date <= end)
        return q.order_by(EventSubmission.event_date, EventSubmission.id).all()

    # --- Attendance aggregates ---

    def attendee_count(self, event_id: str) -> int:
        return self.db.query(EventAttendance).filter(EventAttendance.event_id == event_id).count()

    def attendee_counts(self, event_ids: Iterable[str]) -> dict[str, int]:
        """Attendance count per event id; events with no rows map to 0."""
        ids = list(event_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(EventAttendance.event_id, func.count(EventAttendance.id))
            .filter(EventAttendance.event_id.in_(ids))
            .group_by(EventAttendance.event_id)
            .all()
        )
        counts = {event_id: 0 for event_id in ids}
        counts.update({event_id: n for event_id, n in rows})
        return counts

    def rsvp_emails(self, event_id: str) -> set[str]:
        """Lower-cased emails already RSVP'd to the event."""
        rows = self.db.query(EventAttendance.email).filter(EventAttendance.event_id == event_id).all()
        return {r.email.lower() for r in rows if r.email}

    def distinct_attendee_emails(self, event_ids: Iterable[str]) -> list[str]:
        """Distinct lower-cased attendee emails across the given events."""
        ids = list(event_ids)
        if not ids:
            return []
        lowered = func.lower(EventAttendance.email)
        rows = (
            self.db.query(distinct(lowered))
            .filter(EventAttendance.event_id.in_(ids))
            .order_by(lowered)
            .all()
        )
        return [r[0] for r in rows if r[0]]

    def last_attendance_by_user(self, after: datetime, before: datetime, limit: int) -> list[InactiveUser]:
        """
        Active users whose most recent attendance is strictly between after and before.
        Filters on MAX(timestamp) (HAVING), so a recent attendance keeps a user out.
        Oldest last attendance first, then user id.
        """
        last = func.max(EventAttendance.timestamp)
        rows = (
            self.db.query(User.id, User.name, User.email, last.label("last_attendance"))
            .join(EventAttendance, func.lower(EventAttendance.email) == func.lower(User.email))
            .filter(User.deleted_at.is_(None))
            .group_by(User.id, User.name, User.email)
            .having(last < before, last > after)
            .order_by(last.asc(), User.id.asc())
            .limit(limit)
            .all()
        )
        return [
            InactiveUser(id=r.id, name=r.name, email=r.email, last_attendance=as_utc(r.last_attendance))
            for r in rows
        ]

    def regulars_for_events(self, event_ids: Iterable[str], min_attendances: int) -> list[Regular]:
        """Attendees (grouped by lower-cased email) present at >= min_attendances distinct events."""
        ids = list(event_ids)
        if not ids:
            return []
        email_key = func.lower(EventAttendance.email)
        attended = func.count(distinct(EventAttendance.event_id))
        rows = (
            self.db.query(email_key.label("email"), func.max(EventAttendance.name).label("name"), attended.label("attended"))
            .filter(EventAttendance.event_id.in_(ids))
            .group_by(email_key)
            .having(attended >= min_attendances)
            .order_by(attended.desc(), email_key)
            .all()
        )
        return [Regular(email=r.email, name=r.name, attended=int(r.attended)) for r in rows]

    # --- Users ---

    def active_users_by_emails(self, emails: Iterable[str]) -> list[User]:
        lowered = sorted({e.lower() for e in emails if e})
        if not lowered:
            return []
        return (
            self.db.query(User)
            .filter(func.lower(User.email).in_(lowered), User.deleted_at.is_(None))
            .order_by(User.id)
            .all()
        )

    def active_user_id_by_email(self, email: str | None) -> str | None:
        if not email:
            return None
        row = (
            self.db.query(User.id)
            .filter(func.lower(User.email) == email.strip().lower(), User.deleted_at.is_(None))
            .first()
        )
        return row.id if row else None

    # --- Notifications (eligibility) ---

    def nudges_enabled(self, user_id: str) -> bool:
        return notification_type_enabled(self.db, user_id, NUDGE_NOTIFICATION_TYPE)

    def has_nudge_since(self, user_id: str, since: datetime) -> bool:
        return (
            self.db.query(Notification.id)
            .filter(
                Notification.user_id == user_id,
                Notification.type == NUDGE_NOTIFICATION_TYPE,
                Notification.created_at >= since,
            )
            .first()
            is not None
        )

    def nudge_payloads_since(self, user_id: str, since: datetime) -> list[dict]:
        """Metadata of the user's nudges created at or after since (bounded by the rate limit)."""
        rows = (
            self.db.query(Notification.payload)
            .filter(
                Notification.user_id == user_id,
                Notification.type == NUDGE_NOTIFICATION_TYPE,
                Notification.created_at >= since,
            )
            .all()
        )
        return [r.payload or {} for r in rows]
