from app.services.notifications import create_notification, list_notifications, mark_all_read, mark_read

__all__ = ["create_notification", "list_notifications", "mark_all_read", "mark_read"]
