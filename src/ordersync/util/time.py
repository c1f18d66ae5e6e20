from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return current time as tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_ms(started_at: datetime, *, now: datetime | None = None) -> float:
    """Milliseconds between started_at and now (both tz-aware)."""
    end = now if now is not None else now_utc()
    return (end - started_at).total_seconds() * 1000.0
