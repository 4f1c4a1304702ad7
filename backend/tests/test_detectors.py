"""Signal detectors: windows, thresholds, case-insensitive joins, soft deletes."""
import pytest

from app.models.event_submission import STATUS_PENDING
from app.services.nudges import detectors
from app.services.nudges.detectors import (
    EventRecommendationDetector,
    InactivityDetector,
    LowFillRateDetector,
    RegularsNotSignedUpDetector,
    fill_percent,
)
from app.services.nudges.repository import NudgeRepository
from app.services.nudges.signals import (
    EventRecommendationSignal,
    InactivitySignal,
    LowFillRateSignal,
    RegularsNotSignedUpSignal,
)


def _detect(detector_cls, db, now, *args):
    return list(detector_cls(NudgeRepository(db), *args, now=now).detect())


# --- Inactivity ---


def test_inactive_20_days_yields_days_since_last_activity(db, make, now):
    user = make.user("mei@example.com", name="Mei")
    past = make.event(days_from_now=-20)
    make.attend(past, "MEI@example.com", days_ago=20)

    (candidate,) = _detect(InactivityDetector, db, now)
    assert candidate.user_id == user.id
    assert candidate.signal == InactivitySignal(days_since_last_activity=20, user_name="Mei")
    assert candidate.link == "/discover"


def test_days_since_is_floored(db, make, now):
    make.user("a@example.com")
    make.attend(make.event(days_from_now=-30), "a@example.com", days_ago=20.9)
    (candidate,) = _detect(InactivityDetector, db, now)
    assert candidate.signal.days_since_last_activity == 20


@pytest.mark.parametrize("days_ago", [5, 14, 90, 120])
def test_outside_inactivity_window_is_ignored(db, make, now, days_ago):
    make.user("a@example.com")
    make.attend(make.event(days_from_now=-days_ago), "a@example.com", days_ago=days_ago)
    assert _detect(InactivityDetector, db, now) == []


def test_recent_attendance_keeps_user_out_even_with_older_ones(db, make, now):
    make.user("a@example.com")
    make.attend(make.event(days_from_now=-30), "a@example.com", days_ago=30)
    make.attend(make.event(days_from_now=-5), "a@example.com", days_ago=5)
    assert _detect(InactivityDetector, db, now) == []


def test_soft_deleted_and_unknown_users_are_skipped(db, make, now):
    make.user("gone@example.com", deleted=True)
    event = make.event(days_from_now=-20)
    make.attend(event, "gone@example.com", days_ago=20)
    make.attend(event, "nobody@example.com", days_ago=20)
    assert _detect(InactivityDetector, db, now) == []


def test_inactivity_orders_oldest_first_and_caps(db, make, now, monkeypatch):
    monkeypatch.setattr(detectors, "INACTIVITY_CANDIDATE_LIMIT", 2)
    users = {}
    for email, days in [("a@example.com", 20), ("b@example.com", 60), ("c@example.com", 40)]:
        users[email] = make.user(email)
        make.attend(make.event(days_from_now=-days), email, days_ago=days)

    candidates = _detect(InactivityDetector, db, now)
    assert [c.user_id for c in candidates] == [users["b@example.com"].id, users["c@example.com"].id]


# --- Low fill rate ---


def _organizer_history(make, per_event: list[int], organizer="@runclub"):
    for i, n in enumerate(per_event):
        past = make.event(organizer=organizer, days_from_now=-(7 * (i + 1)))
        make.attendees(past, n, prefix=f"p{i}-")


def test_low_fill_fires_at_25_percent(db, make, now):
    host = make.user("Host@Example.com")
    _organizer_history(make, [20, 20])
    event = make.event(days_from_now=3, slug="sunrise-10k", name="Sunrise 10k")
    make.attendees(event, 5)

    (candidate,) = _detect(LowFillRateDetector, db, now)
    assert candidate.user_id == host.id
    assert candidate.signal == LowFillRateSignal(
        event_id=event.id,
        event_name="Sunrise 10k",
        fill_percent=25,
        days_until_event=3,
        current_attendees=5,
    )
    assert candidate.link == "/event/sunrise-10k"


@pytest.mark.parametrize("current", [10, 12])
def test_low_fill_does_not_fire_at_or_above_50_percent(db, make, now, current):
    make.user("host@example.com")
    _organizer_history(make, [20, 20])
    make.attendees(make.event(days_from_now=3), current)
    assert _detect(LowFillRateDetector, db, now) == []


def test_low_fill_skips_without_history_or_zero_average(db, make, now):
    make.user("host@example.com")
    make.attendees(make.event(organizer="@new", days_from_now=2), 1)
    _organizer_history(make, [0, 0], organizer="@empty")
    make.attendees(make.event(organizer="@empty", days_from_now=2), 1)
    assert _detect(LowFillRateDetector, db, now) == []


def test_low_fill_skips_unresolvable_host(db, make, now):
    _organizer_history(make, [20])
    make.attendees(make.event(days_from_now=3, contact_email="stranger@example.com"), 1)
    assert _detect(LowFillRateDetector, db, now) == []


def test_low_fill_averages_only_last_10_past_events(db, make, now):
    make.user("host@example.com")
    _organizer_history(make, [20] * 10 + [400])  # the 400 is the oldest
    event = make.event(days_from_now=2)
    make.attendees(event, 9)
    (candidate,) = _detect(LowFillRateDetector, db, now)
    assert candidate.signal.fill_percent == 45
    assert candidate.signal.days_until_event == 2


def test_low_fill_scope_is_1_to_5_days_approved(db, make, now):
    make.user("host@example.com")
    _organizer_history(make, [20])
    for days in (0.5, 6):
        make.attendees(make.event(days_from_now=days), 1)
    make.attendees(make.event(days_from_now=2, status=STATUS_PENDING), 1)
    assert _detect(LowFillRateDetector, db, now) == []


def test_days_until_event_rounds_up(db, make, now):
    make.user("host@example.com")
    _organizer_history(make, [20])
    event = make.event(days_from_now=1.2)
    make.attendees(event, 1)
    (candidate,) = _detect(LowFillRateDetector, db, now)
    assert candidate.signal.days_until_event == 2
    assert candidate.link == f"/e/{event.id}"


def test_fill_percent_rounds_half_up():
    assert fill_percent(5, 20) == 25
    assert fill_percent(1, 8) == 13  # 12.5
    assert fill_percent(10, 20) == 50


# --- Regulars not signed up ---


def _regulars_setup(make, past_events=3):
    host = make.user("host@example.com")
    past = [make.event(days_from_now=-(7 * (i + 1))) for i in range(past_events)]
    return host, past


def test_regulars_missing_from_upcoming_event(db, make, now):
    host, past = _regulars_setup(make)
    for e in past:
        make.attend(e, "alice@example.com", name="Alice")
        make.attend(e, "Carol@example.com", name="Carol")
    for e in past[:2]:
        make.attend(e, "bob@example.com", name="Bob")
    event = make.event(days_from_now=5, name="Sunday Long Run")
    make.attend(event, "carol@EXAMPLE.com")

    (candidate,) = _detect(RegularsNotSignedUpDetector, db, now)
    assert candidate.user_id == host.id
    assert candidate.signal == RegularsNotSignedUpSignal(
        event_id=event.id,
        event_name="Sunday Long Run",
        regular_count=1,
        regular_names=("Alice",),
    )


def test_two_attendances_is_not_a_regular(db, make, now):
    _, past = _regulars_setup(make)
    for e in past[:2]:
        make.attend(e, "bob@example.com", name="Bob")
    make.event(days_from_now=5)
    assert _detect(RegularsNotSignedUpDetector, db, now) == []


def test_repeat_rsvps_to_one_event_count_once(db, make, now):
    _, past = _regulars_setup(make)
    for _ in range(3):
        make.attend(past[0], "dup@example.com")
    make.event(days_from_now=5)
    assert _detect(RegularsNotSignedUpDetector, db, now) == []


def test_regulars_require_three_past_events(db, make, now):
    _, past = _regulars_setup(make, past_events=2)
    for e in past:
        make.attend(e, "alice@example.com")
    make.event(days_from_now=5)
    assert _detect(RegularsNotSignedUpDetector, db, now) == []


def test_regular_name_falls_back_to_email_local_part(db, make, now):
    _, past = _regulars_setup(make)
    for e in past:
        make.attend(e, "dana.lim@example.com")
    make.event(days_from_now=4)
    (candidate,) = _detect(RegularsNotSignedUpDetector, db, now)
    assert candidate.signal.regular_names == ("dana.lim",)


def test_regular_names_capped_but_count_is_total(db, make, now):
    _, past = _regulars_setup(make)
    for i in range(7):
        for e in past:
            make.attend(e, f"r{i}@example.com", name=f"R{i}")
    make.event(days_from_now=4)
    (candidate,) = _detect(RegularsNotSignedUpDetector, db, now)
    assert candidate.signal.regular_count == 7
    assert len(candidate.signal.regular_names) == 5


def test_regulars_skip_near_events_and_unresolvable_host(db, make, now):
    _, past = _regulars_setup(make)
    for e in past:
        make.attend(e, "alice@example.com")
    make.event(days_from_now=2)
    make.event(days_from_now=6, contact_email="unknown@example.com")
    assert _detect(RegularsNotSignedUpDetector, db, now) == []


# --- Event recommendation ---


def test_recommendation_targets_past_attendees_not_yet_rsvpd(db, make, now):
    ann = make.user("ann@example.com")
    ben = make.user("Ben@Example.com")
    make.user("cat@example.com")
    make.user("dee@example.com", deleted=True)
    past = make.event(days_from_now=-10)
    for email in ("ann@example.com", "ben@example.com", "cat@example.com", "dee@example.com", "eve@example.com"):
        make.attend(past, email)
    new = make.event(days_from_now=10, name="Trail Run", slug="trail-run", organizer_name="Run Club")
    make.attend(new, "CAT@example.com")

    candidates = _detect(EventRecommendationDetector, db, now, new.id)
    assert sorted(c.user_id for c in candidates) == sorted([ann.id, ben.id])
    assert all(
        c.signal == EventRecommendationSignal(event_id=new.id, event_name="Trail Run", organizer_name="Run Club")
        for c in candidates
    )
    assert {c.link for c in candidates} == {"/event/trail-run"}


def test_recommendation_ignores_other_organizers_and_unapproved_events(db, make, now):
    make.user("ann@example.com")
    make.attend(make.event(organizer="@yoga", days_from_now=-10), "ann@example.com")
    make.attend(make.event(days_from_now=-3, status=STATUS_PENDING), "ann@example.com")
    new = make.event(days_from_now=10)
    assert _detect(EventRecommendationDetector, db, now, new.id) == []


def test_recommendation_unknown_event_is_noop(db, now):
    assert _detect(EventRecommendationDetector, db, now, "missing") == []
