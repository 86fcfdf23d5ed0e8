from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Integer


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class IntegerIdMixin:
    id = Column(Integer, primary_key=True, autoincrement=True)

class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

class AuditMixin(IntegerIdMixin, TimestampMixin):
    """Combines integer ids and timestamps for standard entities."""
    pass
