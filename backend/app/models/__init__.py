from app.models.event_attendance import EventAttendance
from app.models.event_submission import EventSubmission
from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference
from app.models.user import User

__all__ = [
    "EventAttendance",
    "EventSubmission",
    "Notification",
    "NotificationPreference",
    "User",
]
