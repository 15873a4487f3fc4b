from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from campushub.models.reservation import Reservation, ReservationStatus
from campushub.services.reservation_rules import ACTIVE_STATUSES, intervals_overlap, is_currently_active
from campushub.services.reservation_store import ReservationRepository


def find_conflicting_reservation(
    repository: ReservationRepository,
    resource_id: str,
    start_time: datetime,
    end_time: datetime,
    *,
    exclude_reservation_id: str | None = None,
    statuses: Iterable[ReservationStatus] = ACTIVE_STATUSES,
) -> Reservation | None:
    """Return the first reservation on ``resource_id`` overlapping ``[start_time, end_time)``.

    Callers validate the range first; ``start_time < end_time`` is assumed.
    """
    candidates = repository.list_overlapping(resource_id, start_time, end_time, statuses)
    for candidate in candidates:
        if exclude_reservation_id is not None and candidate.id == exclude_reservation_id:
            continue
        if intervals_overlap(candidate.start_time, candidate.end_time, start_time, end_time):
            return candidate
    return None


def has_conflict(
    repository: ReservationRepository,
    resource_id: str,
    start_time: datetime,
    end_time: datetime,
    exclude_reservation_id: str | None = None,
    *,
    statuses: Iterable[ReservationStatus] = ACTIVE_STATUSES,
) -> bool:
    return (
        find_conflicting_reservation(
            repository,
            resource_id,
            start_time,
            end_time,
            exclude_reservation_id=exclude_reservation_id,
            statuses=statuses,
        )
        is not None
    )


def resource_is_occupied(
    repository: ReservationRepository,
    resource_id: str,
    now: datetime,
    *,
    exclude_reservation_ids: Iterable[str] = (),
) -> bool:
    """True when another approved reservation on the resource covers ``now``."""
    excluded = set(exclude_reservation_ids)
    return any(
        is_currently_active(item, now)
        for item in repository.list_approved_covering(now, resource_id=resource_id)
        if item.id not in excluded
    )
