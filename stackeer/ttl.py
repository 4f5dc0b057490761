from __future__ import annotations

SECONDS_PER_HOUR = 60 * 60


def is_valid(stored_at: float | None, ttl_hours: int, now: float) -> bool:
    """Return True while ``now`` lies in ``[stored_at, stored_at + ttl_hours)``.

    Timestamps are absolute epoch seconds, so the comparison is an elapsed
    duration and is unaffected by day or month boundaries. A missing
    timestamp or a ``ttl_hours`` of 0 always reports invalid.
    """

    if stored_at is None or ttl_hours <= 0:
        return False
    elapsed = now - stored_at
    if elapsed < 0:
        return False
    return elapsed < ttl_hours * SECONDS_PER_HOUR
