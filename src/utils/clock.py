"""Time helpers."""
from datetime import datetime, timezone

def utcnow() -> datetime:
    """Naive UTC timestamp, the convention of the database tables."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
