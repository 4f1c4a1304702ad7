"""Host-submitted event. Approved by admin flows outside the nudge engine (read-only here).

organizer_instagram is the organizer handle: the key that groups events by host.
"""
import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from app.db.base import Base

STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"


class EventSubmission(Base):
    __tablename__ = "event_submissions"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    event_name = Column(String(256), nullable=False)
    organizer_instagram = Column(String(128), nullable=False, index=True)
    organizer_name = Column(String(256), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=True, index=True)
    status = Column(String(16), nullable=False, server_default=STATUS_PENDING, default=STATUS_PENDING, index=True)
    slug = Column(String(256), nullable=True, unique=True)
    contact_email = Column(String(320), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
