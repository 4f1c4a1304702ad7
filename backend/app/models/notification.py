"""User notification: persisted read state and metadata.

type: notification kind ('NUDGE' for the nudge engine; other flows create other kinds).
read_at: NULL = unread; set when user marks as read.
metadata: JSON payload. For nudges it always carries nudge_type and, for event-scoped
signals, entity_id; the eligibility gate rebuilds its dedup key from it.
"""
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.db.base import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in local runs/tests)
_Payload = JSON().with_variant(JSONB(), "postgresql")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_type_created", "user_id", "type", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    title = Column(String(256), nullable=False)
    content = Column(Text, nullable=False)
    link = Column(String(512), nullable=True)
    payload = Column("metadata", _Payload, nullable=False, default=dict)  # column name 'metadata' in DB
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
