from __future__ import annotations

from datetime import datetime, timezone

from campushub.core.exceptions import InvalidTimeRangeError
from campushub.models.reservation import Reservation, ReservationStatus

# Statuses that hold a slot on the resource timeline.
ACTIVE_STATUSES = frozenset({ReservationStatus.pending, ReservationStatus.approved})
TERMINAL_STATUSES = frozenset(
    {ReservationStatus.rejected, ReservationStatus.cancelled, ReservationStatus.completed}
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: datetime | str | None) -> datetime:
    """Coerce an API timestamp into an aware UTC datetime.

    Naive values are treated as UTC. Anything missing or unparseable raises
    ``InvalidTimeRangeError`` so callers see the same error family as an
    inverted range.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if value is None or not str(value).strip():
        raise InvalidTimeRangeError("Start time and end time are required")
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidTimeRangeError("Invalid date format for start or end time") from exc
    return as_utc(parsed)


def validate_time_range(start_time: datetime | str | None, end_time: datetime | str | None) -> tuple[datetime, datetime]:
    start = parse_timestamp(start_time)
    end = parse_timestamp(end_time)
    if start >= end:
        raise InvalidTimeRangeError()
    return start, end


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap: [a1, a2) and [b1, b2) overlap iff a1 < b2 and b1 < a2."""
    return as_utc(start_a) < as_utc(end_b) and as_utc(start_b) < as_utc(end_a)


def is_currently_active(reservation: Reservation, now: datetime) -> bool:
    """An approved reservation whose interval contains ``now``."""
    if reservation.status != ReservationStatus.approved:
        return False
    current = as_utc(now)
    return as_utc(reservation.start_time) <= current < as_utc(reservation.end_time)


def is_expired(reservation: Reservation, now: datetime) -> bool:
    return reservation.status == ReservationStatus.approved and as_utc(reservation.end_time) < as_utc(now)


def is_terminal(status: ReservationStatus) -> bool:
    return status in TERMINAL_STATUSES
