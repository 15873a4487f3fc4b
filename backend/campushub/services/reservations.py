"""Reservation lifecycle engine.

Every public operation runs as one unit of work against the repository:
all checks happen first, then the status change and the resource
availability update are written and committed together. Notification
events are collected while the transition runs and dispatched only after
the commit succeeds.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
import logging

from campushub.core.exceptions import (
    ConflictDetectedError,
    ForbiddenError,
    InvalidStateTransitionError,
    MissingReasonError,
    NotFoundError,
    ResourceUnavailableError,
    RoleNotAllowedError,
)
from campushub.models.notification import NotificationPriority, NotificationType
from campushub.models.reservation import Reservation, ReservationStatus
from campushub.models.resource import Resource
from campushub.models.user import UserRole
from campushub.services.conflict_service import find_conflicting_reservation, resource_is_occupied
from campushub.services.notifications import NotificationEvent, NotificationService, dispatch_notifications
from campushub.services.reservation_rules import (
    ACTIVE_STATUSES,
    as_utc,
    is_terminal,
    utc_now,
    validate_time_range,
)
from campushub.services.reservation_store import ReservationRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"title", "purpose", "start_time", "end_time", "attendees_count", "is_recurring", "recurrence_pattern"}
)


def _coerce_role(value: UserRole | str | None) -> UserRole | None:
    if value is None or isinstance(value, UserRole):
        return value
    try:
        return UserRole(str(value))
    except ValueError:
        return None


def _coerce_statuses(
    statuses: ReservationStatus | str | Iterable[ReservationStatus | str] | None,
) -> list[ReservationStatus] | None:
    if statuses is None:
        return None
    if isinstance(statuses, (ReservationStatus, str)):
        statuses = [statuses]
    return [ReservationStatus(item) for item in statuses]


def _format_window(start_time: datetime, end_time: datetime) -> str:
    start = as_utc(start_time)
    end = as_utc(end_time)
    if start.date() == end.date():
        return f"{start:%Y-%m-%d %H:%M}-{end:%H:%M} UTC"
    return f"{start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M} UTC"


class ReservationService:
    def __init__(
        self,
        repository: ReservationRepository,
        notifier: NotificationService | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._clock = clock

    def _now(self) -> datetime:
        return as_utc(self._clock())

    @contextmanager
    def _transaction(self) -> Iterator[list[NotificationEvent]]:
        events: list[NotificationEvent] = []
        try:
            yield events
            self._repository.commit()
        except Exception:
            self._repository.rollback()
            raise
        dispatch_notifications(self._notifier, events)

    def _require_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._repository.get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    def _require_resource(self, resource_id: str) -> Resource:
        resource = self._repository.get_resource(resource_id)
        if resource is None:
            raise NotFoundError("Resource", resource_id)
        return resource

    def _require_admin(self, user_id: str) -> None:
        if self._repository.get_user_role(user_id) != UserRole.admin:
            raise ForbiddenError()

    def _require_owner_or_admin(self, reservation: Reservation, caller_id: str, caller_role: UserRole | None) -> None:
        if reservation.user_id != caller_id and caller_role != UserRole.admin:
            raise ForbiddenError()

    def _sync_availability(self, resource_id: str, now: datetime, *, exclude_reservation_ids: Iterable[str] = ()) -> bool:
        available = not resource_is_occupied(
            self._repository,
            resource_id,
            now,
            exclude_reservation_ids=exclude_reservation_ids,
        )
        self._repository.set_resource_availability(resource_id, available)
        return available

    def _resource_name(self, resource_id: str) -> str:
        resource = self._repository.get_resource(resource_id)
        return resource.name if resource is not None else "the resource"

    def create_reservation(
        self,
        resource_id: str,
        user_id: str,
        user_role: UserRole | str,
        title: str,
        purpose: str,
        start_time: datetime | str,
        end_time: datetime | str,
        attendees_count: int = 1,
        recurrence: dict | None = None,
    ) -> Reservation:
        with self._transaction() as events:
            resource = self._require_resource(resource_id)
            if not resource.availability:
                raise ResourceUnavailableError(resource_id)

            role = _coerce_role(user_role)
            if role is None or not resource.allows_role(role.value):
                raise RoleNotAllowedError(str(getattr(user_role, "value", user_role)))

            start, end = validate_time_range(start_time, end_time)
            conflict = find_conflicting_reservation(self._repository, resource_id, start, end)
            if conflict is not None:
                raise ConflictDetectedError(conflict.id)

            now = self._now()
            auto_approved = not resource.reservation_requires_approval
            reservation = Reservation(
                resource_id=resource_id,
                user_id=user_id,
                title=title.strip(),
                purpose=purpose.strip(),
                start_time=start,
                end_time=end,
                attendees_count=attendees_count,
                status=ReservationStatus.approved if auto_approved else ReservationStatus.pending,
                approval_date=now if auto_approved else None,
                is_recurring=recurrence is not None,
                recurrence_pattern=recurrence,
            )
            self._repository.add_reservation(reservation)
            if auto_approved:
                self._sync_availability(resource_id, now)

            verb = "booked" if auto_approved else "requested"
            events.append(
                NotificationEvent(
                    notification_type=NotificationType.resource_booking,
                    title="New Resource Reservation",
                    message=f"A {role.value} has {verb} {resource.name} for {_format_window(start, end)}.",
                    priority=NotificationPriority.medium,
                    roles=(UserRole.admin,),
                    related_entity_type="reservation",
                    related_entity_id=reservation.id,
                )
            )
        logger.info(
            "Reservation %s created on resource %s with status %s",
            reservation.id,
            resource_id,
            reservation.status.value,
        )
        return reservation

    def approve_reservation(self, reservation_id: str, admin_id: str) -> Reservation:
        with self._transaction() as events:
            reservation = self._require_reservation(reservation_id)
            self._require_admin(admin_id)
            if reservation.status != ReservationStatus.pending:
                raise InvalidStateTransitionError("approve", reservation.status.value)

            # Only another approved booking can block approval; competing pending
            # requests on the same slot are left to the approver's ordering.
            conflict = find_conflicting_reservation(
                self._repository,
                reservation.resource_id,
                reservation.start_time,
                reservation.end_time,
                exclude_reservation_id=reservation.id,
                statuses=(ReservationStatus.approved,),
            )
            if conflict is not None:
                raise ConflictDetectedError(conflict.id)

            now = self._now()
            reservation.status = ReservationStatus.approved
            reservation.approved_by_id = admin_id
            reservation.approval_date = now
            self._repository.save_reservation(reservation)
            self._sync_availability(reservation.resource_id, now)

            events.append(
                NotificationEvent(
                    notification_type=NotificationType.resource_approval,
                    title="Reservation Approved",
                    message=f"Your reservation for {self._resource_name(reservation.resource_id)} has been approved.",
                    priority=NotificationPriority.high,
                    user_id=reservation.user_id,
                    related_entity_type="reservation",
                    related_entity_id=reservation.id,
                )
            )
        logger.info("Reservation %s approved by %s", reservation.id, admin_id)
        return reservation

    def reject_reservation(self, reservation_id: str, admin_id: str, reason: str | None) -> Reservation:
        with self._transaction() as events:
            reservation = self._require_reservation(reservation_id)
            self._require_admin(admin_id)
            if reservation.status != ReservationStatus.pending:
                raise InvalidStateTransitionError("reject", reservation.status.value)
            cleaned_reason = (reason or "").strip()
            if not cleaned_reason:
                raise MissingReasonError()

            reservation.status = ReservationStatus.rejected
            reservation.approved_by_id = admin_id
            reservation.approval_date = self._now()
            reservation.rejection_reason = cleaned_reason
            self._repository.save_reservation(reservation)

            resource_name = self._resource_name(reservation.resource_id)
            events.append(
                NotificationEvent(
                    notification_type=NotificationType.resource_rejection,
                    title="Reservation Rejected",
                    message=f"Your reservation for {resource_name} has been rejected: {cleaned_reason}",
                    priority=NotificationPriority.high,
                    user_id=reservation.user_id,
                    related_entity_type="reservation",
                    related_entity_id=reservation.id,
                )
            )
        logger.info("Reservation %s rejected by %s", reservation.id, admin_id)
        return reservation

    def cancel_reservation(self, reservation_id: str, caller_id: str, caller_role: UserRole | str) -> Reservation:
        with self._transaction():
            reservation = self._require_reservation(reservation_id)
            self._require_owner_or_admin(reservation, caller_id, _coerce_role(caller_role))
            if reservation.status not in ACTIVE_STATUSES:
                raise InvalidStateTransitionError("cancel", reservation.status.value)

            previous_status = reservation.status
            reservation.status = ReservationStatus.cancelled
            self._repository.save_reservation(reservation)
            if previous_status == ReservationStatus.approved:
                self._sync_availability(
                    reservation.resource_id,
                    self._now(),
                    exclude_reservation_ids=[reservation.id],
                )
        logger.info("Reservation %s cancelled (was %s)", reservation.id, previous_status.value)
        return reservation

    def update_reservation(
        self,
        reservation_id: str,
        caller_id: str,
        caller_role: UserRole | str,
        patch: dict,
    ) -> Reservation:
        role = _coerce_role(caller_role)
        with self._transaction():
            reservation = self._require_reservation(reservation_id)
            self._require_owner_or_admin(reservation, caller_id, role)
            if is_terminal(reservation.status):
                raise InvalidStateTransitionError("update", reservation.status.value)
            if reservation.status == ReservationStatus.approved and role != UserRole.admin:
                raise InvalidStateTransitionError("update", reservation.status.value)

            changes = {key: value for key, value in patch.items() if key in UPDATABLE_FIELDS}
            ignored = sorted(set(patch) - UPDATABLE_FIELDS)
            if ignored:
                logger.debug("Ignoring non-updatable reservation fields: %s", ignored)

            window_changed = "start_time" in changes or "end_time" in changes
            if window_changed:
                start, end = validate_time_range(
                    changes.get("start_time", reservation.start_time),
                    changes.get("end_time", reservation.end_time),
                )
                conflict = find_conflicting_reservation(
                    self._repository,
                    reservation.resource_id,
                    start,
                    end,
                    exclude_reservation_id=reservation.id,
                )
                if conflict is not None:
                    raise ConflictDetectedError(conflict.id)
                reservation.start_time = start
                reservation.end_time = end

            for key in ("title", "purpose"):
                if changes.get(key) is not None:
                    setattr(reservation, key, changes[key].strip())
            if changes.get("attendees_count") is not None:
                reservation.attendees_count = changes["attendees_count"]
            if "recurrence_pattern" in changes:
                reservation.recurrence_pattern = changes["recurrence_pattern"]
            if changes.get("is_recurring") is False:
                reservation.recurrence_pattern = None
            # The flag follows the stored pattern; is_recurring=True alone cannot invent one.
            reservation.is_recurring = reservation.recurrence_pattern is not None

            self._repository.save_reservation(reservation)
            if window_changed and reservation.status == ReservationStatus.approved:
                self._sync_availability(reservation.resource_id, self._now())
        logger.info("Reservation %s updated by %s", reservation.id, caller_id)
        return reservation

    def delete_reservation(self, reservation_id: str, admin_id: str) -> None:
        with self._transaction():
            reservation = self._require_reservation(reservation_id)
            self._require_admin(admin_id)
            resource_id = reservation.resource_id
            was_approved = reservation.status == ReservationStatus.approved
            self._repository.delete_reservation(reservation)
            if was_approved:
                self._sync_availability(resource_id, self._now(), exclude_reservation_ids=[reservation_id])
        logger.info("Reservation %s deleted by %s", reservation_id, admin_id)

    def get_reservation(self, reservation_id: str, caller_id: str, caller_role: UserRole | str) -> Reservation:
        reservation = self._require_reservation(reservation_id)
        self._require_owner_or_admin(reservation, caller_id, _coerce_role(caller_role))
        return reservation

    def list_reservations_for_resource(
        self,
        resource_id: str,
        status_filter: ReservationStatus | str | Iterable[ReservationStatus | str] | None = None,
    ) -> list[Reservation]:
        self._require_resource(resource_id)
        statuses = _coerce_statuses(status_filter)
        return self._repository.list_reservations(
            resource_id=resource_id,
            statuses=statuses if statuses is not None else ACTIVE_STATUSES,
        )

    def list_user_reservations(
        self,
        user_id: str,
        status_filter: ReservationStatus | str | Iterable[ReservationStatus | str] | None = None,
    ) -> list[Reservation]:
        return self._repository.list_reservations(user_id=user_id, statuses=_coerce_statuses(status_filter))

    def list_all_reservations(
        self,
        status_filter: ReservationStatus | str | Iterable[ReservationStatus | str] | None = None,
    ) -> list[Reservation]:
        return self._repository.list_reservations(statuses=_coerce_statuses(status_filter))
