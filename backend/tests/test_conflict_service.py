from datetime import datetime, timedelta, timezone

import pytest

from campushub.core.exceptions import InvalidTimeRangeError
from campushub.models.reservation import Reservation, ReservationStatus
from campushub.models.resource import Resource
from campushub.services.conflict_service import find_conflicting_reservation, has_conflict, resource_is_occupied
from campushub.services.memory_store import InMemoryReservationRepository
from campushub.services.reservation_rules import intervals_overlap, parse_timestamp, validate_time_range

BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def at(hours: float) -> datetime:
    return BASE + timedelta(hours=hours)


@pytest.fixture
def repo():
    store = InMemoryReservationRepository()
    store.add_resource(
        Resource(id="lab-1", name="Lab 1", building="Science", floor="2", capacity=30, allowed_roles=["lecturer"])
    )
    return store


def add_booking(repo, reservation_id, start, end, status=ReservationStatus.approved, resource_id="lab-1"):
    return repo.add_reservation(
        Reservation(
            id=reservation_id,
            resource_id=resource_id,
            user_id="u-1",
            title="Booking",
            purpose="Testing",
            start_time=start,
            end_time=end,
            status=status,
        )
    )


def test_intervals_overlap_is_half_open():
    assert intervals_overlap(at(0), at(2), at(1), at(3))
    assert intervals_overlap(at(0), at(4), at(1), at(2))
    assert not intervals_overlap(at(0), at(1), at(1), at(2))
    assert not intervals_overlap(at(1), at(2), at(0), at(1))


def test_identical_window_conflicts(repo):
    add_booking(repo, "r-1", at(0), at(1))
    conflict = find_conflicting_reservation(repo, "lab-1", at(0), at(1))
    assert conflict is not None
    assert conflict.id == "r-1"


def test_adjacent_windows_do_not_conflict(repo):
    add_booking(repo, "r-1", at(0), at(1))
    assert not has_conflict(repo, "lab-1", at(1), at(2))
    assert not has_conflict(repo, "lab-1", at(-1), at(0))


def test_pending_reservations_block_by_default(repo):
    add_booking(repo, "r-1", at(0), at(2), status=ReservationStatus.pending)
    assert has_conflict(repo, "lab-1", at(1), at(3))
    assert not has_conflict(repo, "lab-1", at(1), at(3), statuses=(ReservationStatus.approved,))


@pytest.mark.parametrize(
    "status",
    [ReservationStatus.rejected, ReservationStatus.cancelled, ReservationStatus.completed],
)
def test_terminal_reservations_never_conflict(repo, status):
    add_booking(repo, "r-1", at(0), at(2), status=status)
    assert not has_conflict(repo, "lab-1", at(0), at(2))


def test_excluding_self_allows_rescheduling(repo):
    add_booking(repo, "r-1", at(0), at(2))
    assert has_conflict(repo, "lab-1", at(1), at(3))
    assert not has_conflict(repo, "lab-1", at(1), at(3), exclude_reservation_id="r-1")


def test_other_resources_are_ignored(repo):
    add_booking(repo, "r-1", at(0), at(2), resource_id="hall-9")
    assert not has_conflict(repo, "lab-1", at(0), at(2))


def test_resource_is_occupied_only_inside_approved_window(repo):
    add_booking(repo, "r-1", at(0), at(2))
    add_booking(repo, "r-2", at(3), at(4), status=ReservationStatus.pending)

    assert resource_is_occupied(repo, "lab-1", at(0))
    assert resource_is_occupied(repo, "lab-1", at(1.5))
    assert not resource_is_occupied(repo, "lab-1", at(2))
    assert not resource_is_occupied(repo, "lab-1", at(3.5))
    assert not resource_is_occupied(repo, "lab-1", at(1), exclude_reservation_ids=["r-1"])


def test_validate_time_range_rejects_inverted_and_empty_ranges():
    with pytest.raises(InvalidTimeRangeError, match="Start time must be before end time"):
        validate_time_range(at(2), at(1))
    with pytest.raises(InvalidTimeRangeError):
        validate_time_range(at(1), at(1))


def test_parse_timestamp_accepts_iso_strings_and_treats_naive_as_utc():
    assert parse_timestamp("2026-03-02T09:00:00Z") == BASE
    assert parse_timestamp("2026-03-02T10:00:00+01:00") == BASE
    assert parse_timestamp(datetime(2026, 3, 2, 9, 0)) == BASE


@pytest.mark.parametrize("raw", ["tomorrow morning", "", None, "2026-13-45T25:00"])
def test_parse_timestamp_rejects_garbage(raw):
    with pytest.raises(InvalidTimeRangeError):
        parse_timestamp(raw)
