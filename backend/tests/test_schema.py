"""Models, migration table list and notification preferences stay in agreement."""
from app.db import ALL_TABLE_NAMES, Base
from app.services.notifications import create_notification, notification_type_enabled


def test_models_register_every_migrated_table():
    assert set(Base.metadata.tables) == set(ALL_TABLE_NAMES)


def test_nudge_metadata_column_is_named_metadata():
    assert "metadata" in Base.metadata.tables["notifications"].c


def test_preferences_default_to_enabled(db, make):
    user = make.user("u@example.com")
    assert notification_type_enabled(db, user.id, "NUDGE") is True
    assert notification_type_enabled(db, user.id, "UNKNOWN_KIND") is True


def test_create_notification_respects_opt_out(db, make):
    user = make.user("u@example.com")
    make.opt_out(user)
    assert create_notification(db, user.id, type="NUDGE", title="t", content="b") is None
    # other kinds are unaffected by the nudge toggle
    row = create_notification(db, user.id, type="MESSAGE", title="t", content="b")
    assert row is not None and row.payload == {}
