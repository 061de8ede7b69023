from datetime import datetime, timezone
from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAtMixin:
    # Set in Python so sub-second ordering survives on SQLite
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
