"""
Single source of truth for database tables that exist after migrations (001).
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "users",
    "event_submissions",
    "event_attendances",
    "notifications",
    "notification_preferences",
)
