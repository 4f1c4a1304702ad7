"""
Shared fixtures: in-memory SQLite store, a frozen clock, data factories and a fake copy client.
"""
import json
import os
from datetime import datetime, timedelta, timezone

# Before any app import: app.config / app.db.session read these at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NUDGE_SCHEDULER_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models import EventAttendance, EventSubmission, Notification, NotificationPreference, User
from app.models.event_submission import STATUS_APPROVED
from app.services.nudges.copy_generator import CopyGenerator

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeCopyClient:
    """CopyClient double: canned JSON, or raises when error is set. Records every prompt."""

    def __init__(self, response: str | None = None, error: Exception | None = None):
        self.response = response if response is not None else json.dumps({"title": "Hey there", "body": "Come back soon"})
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.response


class Factory:
    """Creates committed rows; dates are relative to `now` unless given."""

    def __init__(self, db, now: datetime):
        self.db = db
        self.now = now
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, email: str, name: str | None = None, deleted: bool = False) -> User:
        row = User(email=email, name=name, deleted_at=self.now if deleted else None)
        self.db.add(row)
        self.db.commit()
        return row

    def event(
        self,
        organizer: str = "@runclub",
        days_from_now: float | None = 3,
        status: str = STATUS_APPROVED,
        contact_email: str = "host@example.com",
        name: str | None = None,
        slug: str | None = None,
        organizer_name: str | None = "Run Club",
    ) -> EventSubmission:
        n = self._next()
        row = EventSubmission(
            event_name=name or f"Event {n}",
            organizer_instagram=organizer,
            organizer_name=organizer_name,
            event_date=self.now + timedelta(days=days_from_now) if days_from_now is not None else None,
            status=status,
            slug=slug,
            contact_email=contact_email,
        )
        self.db.add(row)
        self.db.commit()
        return row

    def attend(self, event: EventSubmission, email: str, name: str | None = None, days_ago: float = 0) -> EventAttendance:
        row = EventAttendance(
            event_id=event.id,
            email=email,
            name=name,
            timestamp=self.now - timedelta(days=days_ago),
        )
        self.db.add(row)
        self.db.commit()
        return row

    def attendees(self, event: EventSubmission, count: int, prefix: str = "guest", days_ago: float = 0) -> None:
        for i in range(count):
            self.db.add(
                EventAttendance(
                    event_id=event.id,
                    email=f"{prefix}{i}-{event.id[:6]}@example.com",
                    timestamp=self.now - timedelta(days=days_ago),
                )
            )
        self.db.commit()

    def nudge(
        self,
        user: User,
        nudge_type: str,
        entity_id: str | None = None,
        hours_ago: float = 1,
        type: str = "NUDGE",
    ) -> Notification:
        metadata = {"nudge_type": nudge_type}
        if entity_id is not None:
            metadata["entity_id"] = entity_id
        row = Notification(
            user_id=user.id,
            type=type,
            title="t",
            content="b",
            payload=metadata,
            created_at=self.now - timedelta(hours=hours_ago),
        )
        self.db.add(row)
        self.db.commit()
        return row

    def opt_out(self, user: User) -> NotificationPreference:
        row = NotificationPreference(user_id=user.id, nudge_enabled=False)
        self.db.add(row)
        self.db.commit()
        return row


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make(db, now) -> Factory:
    return Factory(db, now)


@pytest.fixture
def copy_client() -> FakeCopyClient:
    return FakeCopyClient()


@pytest.fixture
def copy_generator(copy_client) -> CopyGenerator:
    return CopyGenerator(client=copy_client)


def nudges_for(db, user: User) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.type == "NUDGE")
        .order_by(Notification.id)
        .all()
    )


@pytest.fixture
def nudges(db):
    return lambda user: nudges_for(db, user)
