"""
Signal detectors: read the store, filter, emit NudgeCandidates. Never write.

Each detector is two steps so the engine can isolate failures at the right level:
  scan()              initiating query -> subjects (events, inactive users, ...)
  evaluate(subject)   per-subject reads -> NudgeCandidate or None
A failing scan() is a detector-level error; a failing evaluate() only costs that subject.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

from app.core.constants import (
    DISCOVER_LINK,
    INACTIVITY_CANDIDATE_LIMIT,
    INACTIVITY_MAX_DAYS,
    INACTIVITY_MIN_DAYS,
    LOW_FILL_HISTORY_EVENTS,
    LOW_FILL_MAX_DAYS_OUT,
    LOW_FILL_MIN_DAYS_OUT,
    LOW_FILL_THRESHOLD_PERCENT,
    REGULARS_DISPLAY_NAMES_LIMIT,
    REGULARS_MIN_ATTENDANCES,
    REGULARS_MIN_DAYS_OUT,
    REGULARS_MIN_PAST_EVENTS,
)
from app.models.event_submission import EventSubmission
from app.services.nudges.repository import InactiveUser, NudgeRepository, Regular, as_utc
from app.services.nudges.signals import (
    EventRecommendationSignal,
    InactivitySignal,
    LowFillRateSignal,
    NudgeCandidate,
    NudgeSignalType,
    RegularsNotSignedUpSignal,
)

_DAY_SECONDS = 24 * 60 * 60


def event_link(event: EventSubmission) -> str:
    return f"/event/{event.slug}" if event.slug else f"/e/{event.id}"


def fill_percent(current_attendees: int, average_attendance: float) -> int:
    """round(current / average * 100), halves rounded up. Caller guarantees average > 0."""
    return math.floor(current_attendees / average_attendance * 100 + 0.5)


def display_name(regular: Regular) -> str:
    return regular.name or regular.email.split("@")[0]


class SignalDetector:
    signal_type: NudgeSignalType

    def __init__(self, repo: NudgeRepository, now: datetime | None = None):
        self.repo = repo
        self.now = now or datetime.now(timezone.utc)

    def scan(self) -> list[Any]:
        raise NotImplementedError

    def evaluate(self, subject: Any) -> NudgeCandidate | None:
        raise NotImplementedError

    def describe(self, subject: Any) -> str:
        """Short label for a subject in log lines."""
        return str(getattr(subject, "id", subject))

    def detect(self) -> Iterator[NudgeCandidate]:
        for subject in self.scan():
            candidate = self.evaluate(subject)
            if candidate is not None:
                yield candidate


class EventRecommendationDetector(SignalDetector):
    """
    Reactive: one newly approved event. Past attendees of the same organizer (any other
    APPROVED event) who have not RSVP'd to it yet, resolved to active users.
    """

    signal_type = NudgeSignalType.EVENT_RECOMMENDATION

    def __init__(self, repo: NudgeRepository, event_id: str, now: datetime | None = None):
        super().__init__(repo, now)
        self.event_id = event_id
        self._event: EventSubmission | None = None

    def scan(self) -> list[Any]:
        event = self.repo.get_event(self.event_id)
        if event is None:
            return []
        self._event = event
        other_ids = self.repo.other_approved_event_ids(event.organizer_instagram, event.id)
        if not other_ids:
            return []
        rsvpd = self.repo.rsvp_emails(event.id)
        emails = [e for e in self.repo.distinct_attendee_emails(other_ids) if e not in rsvpd]
        if not emails:
            return []
        return self.repo.active_users_by_emails(emails)

    def evaluate(self, subject: Any) -> NudgeCandidate | None:
        event = self._event
        signal = EventRecommendationSignal(
            event_id=event.id,
            event_name=event.event_name,
            organizer_name=event.organizer_name,
        )
        return NudgeCandidate(user_id=subject.id, signal=signal, link=event_link(event))


class InactivityDetector(SignalDetector):
    """Users whose last attendance is strictly between INACTIVITY_MAX_DAYS and INACTIVITY_MIN_DAYS ago."""

    signal_type = NudgeSignalType.INACTIVITY_REENGAGEMENT

    def scan(self) -> list[Any]:
        return self.repo.last_attendance_by_user(
            after=self.now - timedelta(days=INACTIVITY_MAX_DAYS),
            before=self.now - timedelta(days=INACTIVITY_MIN_DAYS),
            limit=INACTIVITY_CANDIDATE_LIMIT,
        )

    def evaluate(self, subject: InactiveUser) -> NudgeCandidate | None:
        elapsed = (self.now - as_utc(subject.last_attendance)).total_seconds()
        signal = InactivitySignal(
            days_since_last_activity=math.floor(elapsed / _DAY_SECONDS),
            user_name=subject.name,
        )
        return NudgeCandidate(user_id=subject.id, signal=signal, link=DISCOVER_LINK)


class LowFillRateDetector(SignalDetector):
    """Upcoming events (1-5 days out) at < 50% of the organizer's recent average attendance; nudges the host."""

    signal_type = NudgeSignalType.LOW_FILL_RATE

    def scan(self) -> list[Any]:
        return self.repo.approved_events_between(
            self.now + timedelta(days=LOW_FILL_MIN_DAYS_OUT),
            self.now + timedelta(days=LOW_FILL_MAX_DAYS_OUT),
        )

    def evaluate(self, event: EventSubmission) -> NudgeCandidate | None:
        current = self.repo.attendee_count(event.id)
        history = self.repo.past_event_ids(
            event.organizer_instagram, before=self.now, exclude_event_id=event.id, limit=LOW_FILL_HISTORY_EVENTS
        )
        if not history:
            return None
        counts = self.repo.attendee_counts(history)
        average = sum(counts.values()) / len(history)
        if average == 0:
            return None

        percent = fill_percent(current, average)
        if percent >= LOW_FILL_THRESHOLD_PERCENT:
            return None

        host_id = self.repo.active_user_id_by_email(event.contact_email)
        if host_id is None:
            return None

        days_until = math.ceil((as_utc(event.event_date) - self.now).total_seconds() / _DAY_SECONDS)
        signal = LowFillRateSignal(
            event_id=event.id,
            event_name=event.event_name,
            fill_percent=percent,
            days_until_event=days_until,
            current_attendees=current,
        )
        return NudgeCandidate(user_id=host_id, signal=signal, link=event_link(event))


class RegularsNotSignedUpDetector(SignalDetector):
    """Events 3+ days out where the organizer's regulars (3+ past events attended) haven't RSVP'd; nudges the host."""

    signal_type = NudgeSignalType.REGULARS_NOT_SIGNED_UP

    def scan(self) -> list[Any]:
        return self.repo.approved_events_between(self.now + timedelta(days=REGULARS_MIN_DAYS_OUT))

    def evaluate(self, event: EventSubmission) -> NudgeCandidate | None:
        past_ids = self.repo.past_event_ids(event.organizer_instagram, before=self.now, exclude_event_id=event.id)
        if len(past_ids) < REGULARS_MIN_PAST_EVENTS:
            return None

        regulars = self.repo.regulars_for_events(past_ids, REGULARS_MIN_ATTENDANCES)
        rsvpd = self.repo.rsvp_emails(event.id)
        missing = [r for r in regulars if r.email.lower() not in rsvpd]
        if not missing:
            return None

        host_id = self.repo.active_user_id_by_email(event.contact_email)
        if host_id is None:
            return None

        signal = RegularsNotSignedUpSignal(
            event_id=event.id,
            event_name=event.event_name,
            regular_count=len(missing),
            regular_names=tuple(display_name(r) for r in missing[:REGULARS_DISPLAY_NAMES_LIMIT]),
        )
        return NudgeCandidate(user_id=host_id, signal=signal, link=event_link(event))


PERIODIC_DETECTORS: tuple[type[SignalDetector], ...] = (
    InactivityDetector,
    LowFillRateDetector,
    RegularsNotSignedUpDetector,
)
