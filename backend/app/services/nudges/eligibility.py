"""
Eligibility gate: may this user get a nudge for this signal right now?

Rules, in order (first failure rejects):
  0. user has not turned nudges off (notification_preferences.nudge_enabled)
  1. global rate limit: no nudge of any kind in the last NUDGE_RATE_LIMIT_HOURS
  2. dedup: no nudge with the same nudge_type (and entity_id, when given) in the last NUDGE_DEDUP_DAYS

Read-only. Query it per candidate at processing time: rule 1 must see nudges created earlier
in the same run. Callers hold user_lock() across check + insert so two candidates for one
user cannot both pass before either writes.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.constants import NUDGE_DEDUP_DAYS, NUDGE_RATE_LIMIT_HOURS
from app.services.nudges.repository import NudgeRepository
from app.services.nudges.signals import NudgeSignalType

logger = logging.getLogger(__name__)

# Process-local per-user locks with holder counts; an entry lives only while someone holds or waits on it.
# Postgres advisory locks cover other processes.
_user_locks: dict[str, tuple[threading.Lock, int]] = {}
_registry_lock = threading.Lock()


def _acquire_entry(user_id: str) -> threading.Lock:
    with _registry_lock:
        lock, holders = _user_locks.get(user_id, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _user_locks[user_id] = (lock, holders + 1)
        return lock


def _release_entry(user_id: str) -> None:
    with _registry_lock:
        lock, holders = _user_locks[user_id]
        if holders <= 1:
            del _user_locks[user_id]
        else:
            _user_locks[user_id] = (lock, holders - 1)


@contextmanager
def user_lock(db: Session, user_id: str) -> Iterator[None]:
    """
    Serialize eligibility check + notification insert for one user.
    On Postgres also takes a transaction-scoped advisory lock (released on commit/rollback),
    so overlapping runs in different processes serialize too.
    """
    lock = _acquire_entry(user_id)
    try:
        with lock:
            if db.get_bind().dialect.name == "postgresql":
                db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": f"nudge:{user_id}"})
            yield
    finally:
        _release_entry(user_id)


class EligibilityGate:
    def __init__(self, repo: NudgeRepository, now: datetime | None = None):
        self.repo = repo
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    def is_eligible(
        self,
        user_id: str,
        signal_type: NudgeSignalType,
        entity_id: str | None = None,
    ) -> bool:
        now = self.now
        if not self.repo.nudges_enabled(user_id):
            logger.debug("Nudge gate: user %s opted out of nudges", user_id)
            return False

        if self.repo.has_nudge_since(user_id, now - timedelta(hours=NUDGE_RATE_LIMIT_HOURS)):
            logger.debug("Nudge gate: user %s rate limited", user_id)
            return False

        signal_key = NudgeSignalType(signal_type).value
        for payload in self.repo.nudge_payloads_since(user_id, now - timedelta(days=NUDGE_DEDUP_DAYS)):
            if payload.get("nudge_type") != signal_key:
                continue
            if entity_id is None or payload.get("entity_id") == entity_id:
                logger.debug("Nudge gate: user %s already nudged for %s/%s", user_id, signal_key, entity_id)
                return False
        return True
