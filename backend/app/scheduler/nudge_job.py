"""
Daily periodic nudges (inactivity, low fill rate, regulars). Registered in main.py with
max_instances=1; overlapping triggers (cron endpoint + scheduler) are absorbed by the
eligibility gate, not prevented here.

Heartbeat is in-memory (last run started/finished, result, error) for GET /nudges/status.
"""
import logging
import threading
from datetime import datetime, timezone

from app.db.session import SessionLocal
from app.services.nudges.copy_generator import CopyGenerator
from app.services.nudges.engine import process_periodic_nudges
from app.services.nudges.signals import ProcessNudgesResult

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_job_last_started_at: datetime | None = None
_job_last_finished_at: datetime | None = None
_job_last_result: dict | None = None
_job_last_error: str | None = None
_job_running: bool = False


def set_nudge_job_heartbeat(
    started: datetime | None = None,
    finished: datetime | None = None,
    result: dict | None = None,
    error: str | None = None,
    running: bool | None = None,
) -> None:
    global _job_last_started_at, _job_last_finished_at, _job_last_result, _job_last_error, _job_running
    with _lock:
        if started is not None:
            _job_last_started_at = started
            _job_last_error = None
        if finished is not None:
            _job_last_finished_at = finished
        if result is not None:
            _job_last_result = result
        if error is not None:
            _job_last_error = error
        if running is not None:
            _job_running = running


def get_nudge_job_heartbeat() -> dict:
    """Last run times, result counts, error (if any), is_job_running. In-memory only."""
    with _lock:
        return {
            "last_job_started_at": _job_last_started_at.isoformat() if _job_last_started_at else None,
            "last_job_finished_at": _job_last_finished_at.isoformat() if _job_last_finished_at else None,
            "last_result": _job_last_result,
            "last_job_error": _job_last_error,
            "is_job_running": _job_running,
        }


def run_periodic_nudges(db=None, copy_generator: CopyGenerator | None = None) -> ProcessNudgesResult:
    """One periodic run with heartbeat bookkeeping. Opens its own session unless one is passed in."""
    own_session = db is None
    if own_session:
        db = SessionLocal()
    set_nudge_job_heartbeat(started=datetime.now(timezone.utc), running=True)
    try:
        result = process_periodic_nudges(db, copy_generator=copy_generator)
        set_nudge_job_heartbeat(result=result.to_dict())
        return result
    except Exception as e:
        set_nudge_job_heartbeat(error=str(e))
        raise
    finally:
        set_nudge_job_heartbeat(finished=datetime.now(timezone.utc), running=False)
        if own_session:
            db.close()


def run_periodic_nudges_job() -> None:
    """Scheduler entry point: never raises into APScheduler."""
    try:
        run_periodic_nudges()
    except Exception as e:
        logger.exception("Periodic nudge job failed: %s", e)
