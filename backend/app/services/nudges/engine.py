"""
Nudge engine: detectors -> eligibility gate -> copy -> notification row.

Two entry points:
  process_approved_event(event_id)  reactive, called from the event-approval pathway
  process_periodic_nudges()         inactivity, low fill rate, regulars (in that order)

Failure isolation: one subject failing (query, gate, copy, insert) rolls back, counts as an
error and the loop moves on; a detector whose scan() fails counts one error and the next
detector still runs. Only an unreachable store propagates (checked before any detector).
No run state is kept here: the notifications table is the state, and the gate makes
re-runs and overlapping runs safe.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.constants import NUDGE_NOTIFICATION_TYPE
from app.services.notifications import create_notification
from app.services.nudges.copy_generator import CopyGenerator
from app.services.nudges.detectors import (
    EventRecommendationDetector,
    InactivityDetector,
    LowFillRateDetector,
    RegularsNotSignedUpDetector,
    SignalDetector,
)
from app.services.nudges.eligibility import EligibilityGate, user_lock
from app.services.nudges.repository import NudgeRepository
from app.services.nudges.signals import NudgeCandidate, NudgeResult, ProcessNudgesResult, signal_metadata

logger = logging.getLogger(__name__)


class NudgeEngine:
    def __init__(
        self,
        db: Session,
        copy_generator: CopyGenerator | None = None,
        now: datetime | None = None,
    ):
        self.db = db
        self.copy_generator = copy_generator or CopyGenerator()
        self._now = now
        self.repo = NudgeRepository(db)

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    # --- Entry points ---

    def process_approved_event(self, event_id: str) -> NudgeResult:
        self._ping_store()
        detector = EventRecommendationDetector(self.repo, event_id, now=self.now)
        result = self._run_detector(detector)
        logger.info(
            "Event recommendation nudges for %s: sent=%s skipped=%s errors=%s",
            event_id, result.sent, result.skipped, result.errors,
        )
        return result

    def process_periodic_nudges(self) -> ProcessNudgesResult:
        self._ping_store()
        now = self.now
        out = ProcessNudgesResult(
            inactivity=self._run_detector(InactivityDetector(self.repo, now=now)),
            low_fill_rate=self._run_detector(LowFillRateDetector(self.repo, now=now)),
            regulars_not_signed_up=self._run_detector(RegularsNotSignedUpDetector(self.repo, now=now)),
            timestamp=now,
        )
        logger.info("Periodic nudges: %s", out.to_dict())
        return out

    # --- Internals ---

    def _ping_store(self) -> None:
        """Raises if the store is unreachable, before any detector can turn it into a counted error."""
        self.db.execute(text("SELECT 1"))

    def _run_detector(self, detector: SignalDetector) -> NudgeResult:
        result = NudgeResult()
        signal = detector.signal_type.value
        try:
            subjects = detector.scan()
        except Exception as e:
            self.db.rollback()
            logger.exception("%s signal processing error: %s", signal, e)
            result.errors += 1
            return result

        for subject in subjects:
            try:
                candidate = detector.evaluate(subject)
                if candidate is None:
                    continue
                if self._deliver(candidate):
                    result.sent += 1
                else:
                    result.skipped += 1
            except Exception as e:
                self.db.rollback()
                logger.exception("%s nudge error for %s: %s", signal, detector.describe(subject), e)
                result.errors += 1
        return result

    def _deliver(self, candidate: NudgeCandidate) -> bool:
        """Gate, generate, persist for one candidate under its user's lock. False = not eligible."""
        signal = candidate.signal
        gate = EligibilityGate(self.repo, now=self.now)
        with user_lock(self.db, candidate.user_id):
            if not gate.is_eligible(candidate.user_id, signal.signal_type, signal.entity_id):
                self.db.rollback()  # release advisory lock
                return False
            copy = self.copy_generator.generate(signal)
            row = create_notification(
                self.db,
                user_id=candidate.user_id,
                type=NUDGE_NOTIFICATION_TYPE,
                title=copy.title,
                content=copy.body,
                link=candidate.link,
                metadata=signal_metadata(signal),
                created_at=self.now,
            )
            self.db.commit()
        return row is not None


def process_approved_event(db: Session, event_id: str, copy_generator: CopyGenerator | None = None) -> NudgeResult:
    return NudgeEngine(db, copy_generator=copy_generator).process_approved_event(event_id)


def process_periodic_nudges(db: Session, copy_generator: CopyGenerator | None = None) -> ProcessNudgesResult:
    return NudgeEngine(db, copy_generator=copy_generator).process_periodic_nudges()
