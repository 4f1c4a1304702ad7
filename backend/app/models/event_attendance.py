"""RSVP / attendance record. Append-only; written by RSVP flows."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func

from app.db.base import Base


class EventAttendance(Base):
    __tablename__ = "event_attendances"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    event_id = Column(String(36), ForeignKey("event_submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(320), nullable=False, index=True)
    name = Column(String(256), nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
