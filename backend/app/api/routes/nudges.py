"""
Nudge trigger surface: periodic run (cron), event-approval hook, last-run status.

When CRON_SECRET is set, trigger endpoints require "Authorization: Bearer <CRON_SECRET>".
Only an unreachable store escapes a run; it is mapped to 503 via app.core.errors.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import MSG_UNAUTHORIZED, STATUS_UNAUTHORIZED, nudge_error_to_http
from app.db.session import get_db
from app.scheduler.nudge_job import get_nudge_job_heartbeat, run_periodic_nudges
from app.services.nudges.copy_generator import CopyGenerator
from app.services.nudges.engine import process_approved_event

router = APIRouter()
logger = logging.getLogger(__name__)


def get_copy_generator() -> CopyGenerator:
    return CopyGenerator()


def require_cron_secret(authorization: str | None = Header(None)) -> None:
    secret = settings.cron_secret
    if secret and authorization != f"Bearer {secret}":
        raise HTTPException(status_code=STATUS_UNAUTHORIZED, detail=MSG_UNAUTHORIZED)


@router.post("/nudges/process", dependencies=[Depends(require_cron_secret)])
def trigger_periodic_nudges(
    db: Session = Depends(get_db),
    copy_generator: CopyGenerator = Depends(get_copy_generator),
) -> dict[str, Any]:
    """Run inactivity, low fill rate and regulars signals once. Safe to call repeatedly (gate dedups)."""
    try:
        result = run_periodic_nudges(db, copy_generator=copy_generator)
    except Exception as e:
        logger.exception("Periodic nudge run failed: %s", e)
        raise nudge_error_to_http(e)
    return result.to_dict()


@router.post("/nudges/events/{event_id}/approved", dependencies=[Depends(require_cron_secret)])
def event_approved(
    event_id: str,
    db: Session = Depends(get_db),
    copy_generator: CopyGenerator = Depends(get_copy_generator),
) -> dict[str, Any]:
    """Called by the event-approval pathway: recommend the new event to the organizer's past attendees."""
    try:
        result = process_approved_event(db, event_id, copy_generator=copy_generator)
    except Exception as e:
        logger.exception("Event recommendation nudges failed for %s: %s", event_id, e)
        raise nudge_error_to_http(e)
    return {"event_id": event_id, **result.to_dict()}


@router.get("/nudges/status")
def nudge_status() -> dict[str, Any]:
    """Last periodic run (in-memory heartbeat; resets on restart)."""
    return get_nudge_job_heartbeat()
