# goalpost/models/mixins.py
"""Shared SQLAlchemy mixins for timestamps."""

from datetime import datetime, timezone

from sqlalchemy import event

from goalpost.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CreatedAtMixin:
    """Adds an immutable created_at column."""

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)


class TimestampMixin(CreatedAtMixin):
    """Adds created_at and updated_at columns with auto-refresh behavior."""

    updated_at = db.Column(
        db.DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    @staticmethod
    def _set_updated_at(mapper, connection, target):
        """Ensure updated_at is always refreshed before update."""
        target.updated_at = utcnow()

    @classmethod
    def __declare_last__(cls):
        event.listen(cls, "before_update", cls._set_updated_at)
