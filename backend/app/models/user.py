"""Marketplace user. Owned by the auth/profile flows; the nudge engine only reads it.

email is the join key against event_attendances (compared case-insensitively).
deleted_at: soft delete; NULL = active.
"""
import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    name = Column(String(256), nullable=True)
    email = Column(String(320), nullable=False, unique=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
