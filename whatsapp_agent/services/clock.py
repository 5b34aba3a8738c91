import threading
from datetime import datetime, timedelta, timezone

_lock = threading.Lock()
_last: datetime | None = None


def utcnow() -> datetime:
    """Current UTC time, strictly increasing across calls within this process.

    Message ordering relies on ``created_at``; two calls landing on the same
    clock tick are pushed apart by one microsecond.
    """
    global _last
    with _lock:
        now = datetime.now(timezone.utc)
        if _last is not None and now <= _last:
            now = _last + timedelta(microseconds=1)
        _last = now
        return now
