"""Nudge engine schema: users, event submissions, attendances, notifications, preferences.

notifications.metadata (JSONB) carries nudge_type / entity_id for nudges; the eligibility gate
reads a user's recent NUDGE rows, so (user_id, type, created_at) is indexed.
Attendance joins users on LOWER(email): functional indexes on both sides.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email_lower", "users", [sa.text("lower(email)")], unique=False)

    op.create_table(
        "event_submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_name", sa.String(256), nullable=False),
        sa.Column("organizer_instagram", sa.String(128), nullable=False),
        sa.Column("organizer_name", sa.String(256), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("slug", sa.String(256), nullable=True),
        sa.Column("contact_email", sa.String(320), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("slug", name="uq_event_submissions_slug"),
    )
    op.create_index("ix_event_submissions_organizer_instagram", "event_submissions", ["organizer_instagram"], unique=False)
    op.create_index("ix_event_submissions_event_date", "event_submissions", ["event_date"], unique=False)
    op.create_index("ix_event_submissions_status", "event_submissions", ["status"], unique=False)

    op.create_table(
        "event_attendances",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "event_id",
            sa.String(36),
            sa.ForeignKey("event_submissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_event_attendances_event_id", "event_attendances", ["event_id"], unique=False)
    op.create_index("ix_event_attendances_email", "event_attendances", ["email"], unique=False)
    op.create_index("ix_event_attendances_email_lower", "event_attendances", [sa.text("lower(email)")], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("link", sa.String(512), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index(
        "ix_notifications_user_type_created",
        "notifications",
        ["user_id", "type", "created_at"],
        unique=False,
    )

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("mention_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("message_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("activity_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("nudge_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("user_id", name="uq_notification_preferences_user_id"),
    )
    op.create_index("ix_notification_preferences_user_id", "notification_preferences", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_preferences_user_id", table_name="notification_preferences")
    op.drop_table("notification_preferences")
    op.drop_index("ix_notifications_user_type_created", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_event_attendances_email_lower", table_name="event_attendances")
    op.drop_index("ix_event_attendances_email", table_name="event_attendances")
    op.drop_index("ix_event_attendances_event_id", table_name="event_attendances")
    op.drop_table("event_attendances")
    op.drop_index("ix_event_submissions_status", table_name="event_submissions")
    op.drop_index("ix_event_submissions_event_date", table_name="event_submissions")
    op.drop_index("ix_event_submissions_organizer_instagram", table_name="event_submissions")
    op.drop_table("event_submissions")
    op.drop_index("ix_users_email_lower", table_name="users")
    op.drop_table("users")
