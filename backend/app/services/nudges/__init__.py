from app.services.nudges.engine import NudgeEngine, process_approved_event, process_periodic_nudges
from app.services.nudges.signals import NudgeResult, NudgeSignalType, ProcessNudgesResult

__all__ = [
    "NudgeEngine",
    "NudgeResult",
    "NudgeSignalType",
    "ProcessNudgesResult",
    "process_approved_event",
    "process_periodic_nudges",
]
