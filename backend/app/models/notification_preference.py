"""Per-user notification toggles. No row = everything enabled."""
from sqlalchemy import Boolean, Column, Integer, String, true

from app.db.base import Base


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, unique=True, index=True)
    mention_enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    message_enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    activity_enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    nudge_enabled = Column(Boolean, nullable=False, default=True, server_default=true())
