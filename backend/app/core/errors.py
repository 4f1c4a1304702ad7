"""
Centralized error handling for nudge trigger endpoints.
Constants and a reusable helper so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException
from sqlalchemy.exc import DBAPIError, OperationalError

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

MSG_STORE_UNAVAILABLE = "Data store unavailable; nudge run not started. Retry on the next tick."
MSG_UNAUTHORIZED = "Unauthorized"

# HTTP status codes for known error categories
STATUS_UNAUTHORIZED = 401
STATUS_SERVICE_UNAVAILABLE = 503  # database down / unreachable
STATUS_INTERNAL_ERROR = 500


class NudgeEngineError(Exception):
    """Base class for errors raised by the nudge engine."""


class CopyGenerationError(NudgeEngineError):
    """The generative provider returned nothing usable (caught inside the copy generator)."""


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code, detail_message)
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_store_unavailable(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


# List of (predicate, status_code, detail). First match wins.
NUDGE_ERROR_RULES: list[tuple[Callable[[Exception], bool], int, str]] = [
    (_is_store_unavailable, STATUS_SERVICE_UNAVAILABLE, MSG_STORE_UNAVAILABLE),
]


def nudge_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception that escaped a nudge run into an HTTPException.
    Uses NUDGE_ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for predicate, status_code, detail in NUDGE_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
