from datetime import datetime
from typing import Optional
import pytz

UTC = pytz.utc


def get_utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(UTC)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to timestamps read back from stores that drop tzinfo (SQLite).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)
