from datetime import datetime, timedelta, timezone
import logging

import pytest
from sqlalchemy import select

from campushub.core.exceptions import (
    ConflictDetectedError,
    ForbiddenError,
    InvalidStateTransitionError,
    InvalidTimeRangeError,
    MissingReasonError,
    NotFoundError,
    ResourceUnavailableError,
    RoleNotAllowedError,
    StorageUnavailableError,
)
from campushub.models.notification import NotificationPriority
from campushub.models.reservation import Reservation, ReservationStatus
from campushub.models.resource import Resource
from campushub.models.user import User, UserRole
from campushub.services.memory_store import InMemoryReservationRepository, RecordingNotificationService
from campushub.services.reservation_store import SqlAlchemyReservationRepository
from campushub.services.reservations import ReservationService

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def at(hours: float) -> datetime:
    return NOW + timedelta(hours=hours)


class ExplodingNotifier:
    def __init__(self) -> None:
        self.calls = 0

    def create(self, event) -> None:
        self.calls += 1
        raise RuntimeError("notification store offline")


@pytest.fixture
def repo():
    store = InMemoryReservationRepository()
    store.add_user("admin-1", UserRole.admin)
    store.add_user("lecturer-1", UserRole.lecturer)
    store.add_user("lecturer-2", UserRole.lecturer)
    store.add_user("student-1", UserRole.student)
    store.add_resource(
        Resource(
            id="room-101",
            name="Room 101",
            building="Main",
            floor="1",
            capacity=40,
            reservation_requires_approval=False,
            allowed_roles=["lecturer", "admin"],
        )
    )
    store.add_resource(
        Resource(
            id="hall-a",
            name="Hall A",
            building="Main",
            floor="G",
            capacity=300,
            reservation_requires_approval=True,
            allowed_roles=["lecturer", "admin", "student"],
        )
    )
    return store


@pytest.fixture
def notifier():
    return RecordingNotificationService()


@pytest.fixture
def service(repo, notifier):
    return ReservationService(repo, notifier, clock=lambda: NOW)


def book(service, resource_id="room-101", user_id="lecturer-1", role=UserRole.lecturer, start=1, end=2, **kwargs):
    return service.create_reservation(
        resource_id=resource_id,
        user_id=user_id,
        user_role=role,
        title="  Algorithms lecture ",
        purpose="Weekly class",
        start_time=at(start),
        end_time=at(end),
        **kwargs,
    )


def test_auto_approved_booking_covering_now_takes_resource_offline(service, repo, notifier):
    reservation = book(service, start=-1, end=1)

    assert reservation.status == ReservationStatus.approved
    assert reservation.approval_date == NOW
    assert reservation.title == "Algorithms lecture"
    assert repo.resources["room-101"].availability is False
    assert repo.commits == 1
    assert notifier.kinds() == ["resource_booking"]
    assert notifier.events[0].roles == (UserRole.admin,)


def test_auto_approved_future_booking_keeps_resource_available(service, repo):
    reservation = book(service, start=24, end=26)

    assert reservation.status == ReservationStatus.approved
    assert repo.resources["room-101"].availability is True


def test_approval_required_flow_then_cancel(service, repo, notifier):
    reservation = book(service, resource_id="hall-a", start=-0.5, end=1.5)
    assert reservation.status == ReservationStatus.pending
    assert reservation.approval_date is None
    assert repo.resources["hall-a"].availability is True

    approved = service.approve_reservation(reservation.id, "admin-1")
    assert approved.status == ReservationStatus.approved
    assert approved.approved_by_id == "admin-1"
    assert approved.approval_date == NOW
    assert repo.resources["hall-a"].availability is False

    cancelled = service.cancel_reservation(reservation.id, "lecturer-1", UserRole.lecturer)
    assert cancelled.status == ReservationStatus.cancelled
    assert repo.resources["hall-a"].availability is True

    assert notifier.kinds() == ["resource_booking", "resource_approval"]
    approval_event = notifier.events[1]
    assert approval_event.user_id == "lecturer-1"
    assert approval_event.priority == NotificationPriority.high


def test_overlapping_booking_is_rejected_and_rolled_back(service, repo, notifier):
    first = book(service, start=1, end=3)

    with pytest.raises(ConflictDetectedError) as excinfo:
        book(service, user_id="lecturer-2", start=2, end=4)

    assert excinfo.value.details["conflicting_reservation_id"] == first.id
    assert len(repo.reservations) == 1
    assert repo.rollbacks == 1
    assert notifier.kinds() == ["resource_booking"]


def test_adjacent_booking_is_accepted(service, repo):
    book(service, start=1, end=2)
    second = book(service, user_id="lecturer-2", start=2, end=3)
    assert second.status == ReservationStatus.approved
    assert len(repo.reservations) == 2


def test_pending_reservation_blocks_new_bookings(service):
    book(service, resource_id="hall-a", start=1, end=2)
    with pytest.raises(ConflictDetectedError):
        book(service, resource_id="hall-a", user_id="lecturer-2", start=1.5, end=2.5)


def test_second_overlapping_pending_reservation_cannot_be_approved(service, repo):
    for reservation_id in ("req-1", "req-2"):
        repo.add_reservation(
            Reservation(
                id=reservation_id,
                resource_id="hall-a",
                user_id="lecturer-1",
                title="Seminar",
                purpose="Imported request",
                start_time=at(5),
                end_time=at(7),
                status=ReservationStatus.pending,
            )
        )

    service.approve_reservation("req-1", "admin-1")
    with pytest.raises(ConflictDetectedError):
        service.approve_reservation("req-2", "admin-1")

    assert repo.reservations["req-1"].status == ReservationStatus.approved
    assert repo.reservations["req-2"].status == ReservationStatus.pending


def test_reject_requires_reason(service, repo, notifier):
    reservation = book(service, resource_id="hall-a")

    with pytest.raises(MissingReasonError, match="Please provide a reason for rejection"):
        service.reject_reservation(reservation.id, "admin-1", "   ")
    assert repo.reservations[reservation.id].status == ReservationStatus.pending

    rejected = service.reject_reservation(reservation.id, "admin-1", " Room closed for maintenance ")
    assert rejected.status == ReservationStatus.rejected
    assert rejected.rejection_reason == "Room closed for maintenance"
    assert notifier.kinds()[-1] == "resource_rejection"
    assert "Room closed for maintenance" in notifier.events[-1].message


def test_only_admins_can_approve_or_reject(service):
    reservation = book(service, resource_id="hall-a")

    with pytest.raises(ForbiddenError):
        service.approve_reservation(reservation.id, "lecturer-2")
    with pytest.raises(ForbiddenError):
        service.reject_reservation(reservation.id, "student-1", "no")


def test_missing_reservation_is_reported_before_permissions(service):
    with pytest.raises(NotFoundError, match="Reservation not found"):
        service.approve_reservation("missing", "lecturer-1")


@pytest.mark.parametrize(
    "final_status",
    [ReservationStatus.rejected, ReservationStatus.cancelled, ReservationStatus.completed],
)
def test_terminal_reservations_accept_no_transitions(service, repo, final_status):
    reservation = book(service, resource_id="hall-a")
    repo.reservations[reservation.id].status = final_status

    with pytest.raises(InvalidStateTransitionError, match=f"Cannot approve a {final_status.value} reservation"):
        service.approve_reservation(reservation.id, "admin-1")
    with pytest.raises(InvalidStateTransitionError):
        service.reject_reservation(reservation.id, "admin-1", "reason")
    with pytest.raises(InvalidStateTransitionError):
        service.cancel_reservation(reservation.id, "lecturer-1", UserRole.lecturer)
    with pytest.raises(InvalidStateTransitionError):
        service.update_reservation(reservation.id, "admin-1", UserRole.admin, {"title": "New"})
    assert repo.reservations[reservation.id].status == final_status


def test_approved_reservation_cannot_be_approved_again(service):
    reservation = book(service)
    with pytest.raises(InvalidStateTransitionError, match="Cannot approve a approved reservation"):
        service.approve_reservation(reservation.id, "admin-1")


def test_cancel_requires_owner_or_admin(service):
    reservation = book(service)

    with pytest.raises(ForbiddenError):
        service.cancel_reservation(reservation.id, "lecturer-2", UserRole.lecturer)

    cancelled = service.cancel_reservation(reservation.id, "admin-1", UserRole.admin)
    assert cancelled.status == ReservationStatus.cancelled


def test_cancelling_pending_reservation_leaves_availability_alone(service, repo):
    reservation = book(service, resource_id="hall-a", start=-1, end=1)
    repo.resources["hall-a"].availability = False

    service.cancel_reservation(reservation.id, "lecturer-1", UserRole.lecturer)
    assert repo.resources["hall-a"].availability is False


def test_role_not_allowed(service, repo):
    with pytest.raises(RoleNotAllowedError) as excinfo:
        book(service, user_id="student-1", role=UserRole.student)
    assert excinfo.value.details == {"role": "student"}
    assert repo.reservations == {}


def test_unavailable_resource_cannot_be_booked(service, repo):
    repo.resources["room-101"].availability = False
    with pytest.raises(ResourceUnavailableError, match="Resource is not available for booking"):
        book(service, start=24, end=25)


def test_unknown_resource(service):
    with pytest.raises(NotFoundError, match="Resource not found"):
        book(service, resource_id="nope")


def test_invalid_time_ranges(service, repo):
    with pytest.raises(InvalidTimeRangeError):
        book(service, start=3, end=2)
    with pytest.raises(InvalidTimeRangeError):
        book(service, start=3, end=3)
    with pytest.raises(InvalidTimeRangeError, match="Invalid date format"):
        service.create_reservation(
            resource_id="room-101",
            user_id="lecturer-1",
            user_role="lecturer",
            title="Lecture",
            purpose="Class",
            start_time="next tuesday",
            end_time="2026-03-03T10:00:00Z",
        )
    assert repo.reservations == {}


def test_string_timestamps_and_recurrence_are_stored(service):
    reservation = service.create_reservation(
        resource_id="room-101",
        user_id="lecturer-1",
        user_role="lecturer",
        title="Lab session",
        purpose="Weekly lab",
        start_time="2026-03-03T09:00:00Z",
        end_time="2026-03-03T11:00:00Z",
        recurrence={"frequency": "weekly", "days_of_week": [2], "end_date": None},
    )
    assert reservation.start_time == datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc)
    assert reservation.is_recurring is True
    assert reservation.recurrence_pattern["frequency"] == "weekly"


def test_notifier_failure_does_not_undo_the_transition(repo, caplog):
    notifier = ExplodingNotifier()
    service = ReservationService(repo, notifier, clock=lambda: NOW)

    with caplog.at_level(logging.WARNING, logger="campushub.services.notifications"):
        reservation = book(service)

    assert notifier.calls == 1
    assert repo.reservations[reservation.id].status == ReservationStatus.approved
    assert repo.rollbacks == 0
    assert "Notification delivery failed" in caplog.text


def test_pending_owner_can_reschedule(service, repo):
    reservation = book(service, resource_id="hall-a", start=1, end=2)
    book(service, resource_id="hall-a", user_id="lecturer-2", start=4, end=5)

    updated = service.update_reservation(
        reservation.id,
        "lecturer-1",
        UserRole.lecturer,
        {"start_time": at(2), "end_time": at(3), "status": "approved", "user_id": "someone-else"},
    )
    assert updated.start_time == at(2)
    assert updated.end_time == at(3)
    assert updated.status == ReservationStatus.pending
    assert updated.user_id == "lecturer-1"

    with pytest.raises(ConflictDetectedError):
        service.update_reservation(reservation.id, "lecturer-1", UserRole.lecturer, {"end_time": at(4.5)})
    with pytest.raises(InvalidTimeRangeError):
        service.update_reservation(reservation.id, "lecturer-1", UserRole.lecturer, {"end_time": at(1)})


def test_only_admin_can_edit_approved_reservation(service, repo):
    reservation = book(service, start=2, end=3)

    with pytest.raises(InvalidStateTransitionError, match="Cannot update a approved reservation"):
        service.update_reservation(reservation.id, "lecturer-1", UserRole.lecturer, {"title": "Moved"})

    updated = service.update_reservation(
        reservation.id,
        "admin-1",
        UserRole.admin,
        {"start_time": at(-1), "end_time": at(1)},
    )
    assert updated.status == ReservationStatus.approved
    assert repo.resources["room-101"].availability is False


def test_update_by_stranger_is_forbidden(service):
    reservation = book(service, resource_id="hall-a")
    with pytest.raises(ForbiddenError):
        service.update_reservation(reservation.id, "lecturer-2", UserRole.lecturer, {"title": "Mine now"})


def test_deleting_active_reservation_frees_resource(service, repo):
    reservation = book(service, start=-1, end=1)
    assert repo.resources["room-101"].availability is False

    with pytest.raises(ForbiddenError):
        service.delete_reservation(reservation.id, "lecturer-1")

    service.delete_reservation(reservation.id, "admin-1")
    assert reservation.id not in repo.reservations
    assert repo.resources["room-101"].availability is True


def test_listing_defaults_to_active_reservations(service, repo):
    kept = book(service, start=1, end=2)
    dropped = book(service, start=3, end=4)
    service.cancel_reservation(dropped.id, "lecturer-1", UserRole.lecturer)

    assert [item.id for item in service.list_reservations_for_resource("room-101")] == [kept.id]
    assert [item.id for item in service.list_reservations_for_resource("room-101", "cancelled")] == [dropped.id]
    assert len(service.list_user_reservations("lecturer-1")) == 2
    assert len(service.list_all_reservations(ReservationStatus.approved)) == 1

    with pytest.raises(NotFoundError):
        service.list_reservations_for_resource("missing")


def test_is_recurring_follows_the_pattern(service):
    reservation = book(service, resource_id="hall-a")

    flagged = service.update_reservation(reservation.id, "lecturer-1", UserRole.lecturer, {"is_recurring": True})
    assert flagged.is_recurring is False
    assert flagged.recurrence_pattern is None

    pattern = {"frequency": "weekly", "days_of_week": [1], "end_date": None}
    patterned = service.update_reservation(
        reservation.id, "lecturer-1", UserRole.lecturer, {"recurrence_pattern": pattern}
    )
    assert patterned.is_recurring is True

    cleared = service.update_reservation(reservation.id, "lecturer-1", UserRole.lecturer, {"is_recurring": False})
    assert cleared.is_recurring is False
    assert cleared.recurrence_pattern is None


class FailingAvailabilityRepository(SqlAlchemyReservationRepository):
    def set_resource_availability(self, resource_id: str, available: bool):
        raise StorageUnavailableError("set_resource_availability")


def test_storage_failure_leaves_no_partial_reservation(session_factory):
    db = session_factory()
    try:
        lecturer = User(name="Lecturer", email="lecturer@campus.example.edu", role=UserRole.lecturer)
        resource = Resource(
            name="Room 202",
            building="Main",
            floor="2",
            capacity=30,
            allowed_roles=["lecturer"],
            created_by_id="seed",
        )
        db.add_all([lecturer, resource])
        db.commit()
        lecturer_id, resource_id = lecturer.id, resource.id

        service = ReservationService(FailingAvailabilityRepository(db), clock=lambda: NOW)
        with pytest.raises(StorageUnavailableError):
            service.create_reservation(
                resource_id=resource_id,
                user_id=lecturer_id,
                user_role=UserRole.lecturer,
                title="Lecture",
                purpose="Class",
                start_time=at(-1),
                end_time=at(1),
            )
    finally:
        db.close()

    check = session_factory()
    try:
        assert check.execute(select(Reservation)).scalars().all() == []
        assert check.get(Resource, resource_id).availability is True
    finally:
        check.close()
