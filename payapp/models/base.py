from datetime import datetime, timezone

from sqlalchemy import DateTime


def utcnow() -> datetime:
    """Aware UTC timestamp; every created_at / updated_at column stores one."""
    return datetime.now(timezone.utc)


def timestamp_type() -> DateTime:
    return DateTime(timezone=True)
