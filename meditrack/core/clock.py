from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]

def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def get_clock() -> Clock:
    """Clock dependency; tests override it with a fixed instant."""
    return utcnow
