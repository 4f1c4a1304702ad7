"""
Nudge signal taxonomy and result types.

A signal is a detected condition worth telling one user about. Each of the four kinds is
its own frozen dataclass carrying only what its copy and metadata need; NudgeSignal is the
closed union. Signals are ephemeral: built by a detector, consumed by the gate and the copy
generator, then dropped.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union


class NudgeSignalType(str, Enum):
    EVENT_RECOMMENDATION = "EVENT_RECOMMENDATION"
    INACTIVITY_REENGAGEMENT = "INACTIVITY_REENGAGEMENT"
    LOW_FILL_RATE = "LOW_FILL_RATE"
    REGULARS_NOT_SIGNED_UP = "REGULARS_NOT_SIGNED_UP"


@dataclass(frozen=True)
class EventRecommendationSignal:
    """A host the user attended before just had a new event approved."""

    signal_type: ClassVar[NudgeSignalType] = NudgeSignalType.EVENT_RECOMMENDATION

    event_id: str
    event_name: str
    organizer_name: str | None = None

    @property
    def entity_id(self) -> str | None:
        return self.event_id


@dataclass(frozen=True)
class InactivitySignal:
    """User has not attended anything in a while. Not scoped to an entity."""

    signal_type: ClassVar[NudgeSignalType] = NudgeSignalType.INACTIVITY_REENGAGEMENT

    days_since_last_activity: int
    user_name: str | None = None

    @property
    def entity_id(self) -> str | None:
        return None


@dataclass(frozen=True)
class LowFillRateSignal:
    """Host's upcoming event is filling well below the organizer's usual attendance."""

    signal_type: ClassVar[NudgeSignalType] = NudgeSignalType.LOW_FILL_RATE

    event_id: str
    event_name: str
    fill_percent: int
    days_until_event: int
    current_attendees: int

    @property
    def entity_id(self) -> str | None:
        return self.event_id


@dataclass(frozen=True)
class RegularsNotSignedUpSignal:
    """Host's regulars have not RSVP'd to an upcoming event.

    regular_count counts every missing regular; regular_names is capped for display.
    """

    signal_type: ClassVar[NudgeSignalType] = NudgeSignalType.REGULARS_NOT_SIGNED_UP

    event_id: str
    event_name: str
    regular_count: int
    regular_names: tuple[str, ...] = ()

    @property
    def entity_id(self) -> str | None:
        return self.event_id


NudgeSignal = Union[
    EventRecommendationSignal,
    InactivitySignal,
    LowFillRateSignal,
    RegularsNotSignedUpSignal,
]


def signal_metadata(signal: NudgeSignal) -> dict[str, Any]:
    """Notification metadata for a signal: nudge_type, entity_id (when scoped) and the signal fields."""
    out: dict[str, Any] = {"nudge_type": signal.signal_type.value}
    if signal.entity_id is not None:
        out["entity_id"] = signal.entity_id
    for key, value in asdict(signal).items():
        if key == "event_id":
            continue  # already stored as entity_id
        out[key] = list(value) if isinstance(value, tuple) else value
    return out


@dataclass(frozen=True)
class NudgeCandidate:
    """One (recipient, signal) pair produced by a detector, plus the deep link for the notification."""

    user_id: str
    signal: NudgeSignal
    link: str | None = None


@dataclass(frozen=True)
class NudgeCopy:
    title: str
    body: str


@dataclass
class NudgeResult:
    sent: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class ProcessNudgesResult:
    inactivity: NudgeResult = field(default_factory=NudgeResult)
    low_fill_rate: NudgeResult = field(default_factory=NudgeResult)
    regulars_not_signed_up: NudgeResult = field(default_factory=NudgeResult)
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "inactivity": self.inactivity.to_dict(),
            "low_fill_rate": self.low_fill_rate.to_dict(),
            "regulars_not_signed_up": self.regulars_not_signed_up.to_dict(),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
