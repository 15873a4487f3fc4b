"""In-memory collaborators for exercising the reservation engine without a database."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
import uuid

from campushub.models.reservation import Reservation, ReservationStatus
from campushub.models.resource import Resource
from campushub.models.user import UserRole
from campushub.services.notifications import NotificationEvent
from campushub.services.reservation_rules import as_utc, intervals_overlap, is_currently_active, is_expired


class InMemoryReservationRepository:
    def __init__(self) -> None:
        self.resources: dict[str, Resource] = {}
        self.reservations: dict[str, Reservation] = {}
        self.user_roles: dict[str, UserRole] = {}
        self.commits = 0
        self.rollbacks = 0

    def add_user(self, user_id: str, role: UserRole) -> None:
        self.user_roles[user_id] = role

    def add_resource(self, resource: Resource) -> Resource:
        if resource.id is None:
            resource.id = str(uuid.uuid4())
        if resource.availability is None:
            resource.availability = True
        if resource.reservation_requires_approval is None:
            resource.reservation_requires_approval = False
        self.resources[resource.id] = resource
        return resource

    def get_resource(self, resource_id: str) -> Resource | None:
        return self.resources.get(resource_id)

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        return self.reservations.get(reservation_id)

    def get_user_role(self, user_id: str) -> UserRole | None:
        return self.user_roles.get(user_id)

    def add_reservation(self, reservation: Reservation) -> Reservation:
        if reservation.id is None:
            reservation.id = str(uuid.uuid4())
        if reservation.is_recurring is None:
            reservation.is_recurring = False
        self.reservations[reservation.id] = reservation
        return reservation

    def save_reservation(self, reservation: Reservation) -> Reservation:
        self.reservations[reservation.id] = reservation
        return reservation

    def delete_reservation(self, reservation: Reservation) -> None:
        self.reservations.pop(reservation.id, None)

    def list_reservations(
        self,
        *,
        resource_id: str | None = None,
        user_id: str | None = None,
        statuses: Iterable[ReservationStatus] | None = None,
    ) -> list[Reservation]:
        allowed = set(statuses) if statuses is not None else None
        items = [
            item
            for item in self.reservations.values()
            if (resource_id is None or item.resource_id == resource_id)
            and (user_id is None or item.user_id == user_id)
            and (allowed is None or item.status in allowed)
        ]
        return sorted(items, key=lambda item: as_utc(item.start_time))

    def list_overlapping(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        statuses: Iterable[ReservationStatus],
    ) -> list[Reservation]:
        return [
            item
            for item in self.list_reservations(resource_id=resource_id, statuses=statuses)
            if intervals_overlap(item.start_time, item.end_time, start_time, end_time)
        ]

    def list_approved_covering(self, now: datetime, *, resource_id: str | None = None) -> list[Reservation]:
        return [
            item
            for item in self.list_reservations(resource_id=resource_id)
            if is_currently_active(item, now)
        ]

    def list_expired_approved(self, now: datetime) -> list[Reservation]:
        return [item for item in self.reservations.values() if is_expired(item, now)]

    def set_resource_availability(self, resource_id: str, available: bool) -> Resource | None:
        resource = self.resources.get(resource_id)
        if resource is not None:
            resource.availability = available
        return resource

    def mark_completed(self, reservation_ids: Iterable[str]) -> int:
        updated = 0
        for reservation_id in dict.fromkeys(reservation_ids):
            reservation = self.reservations.get(reservation_id)
            if reservation is not None and reservation.status == ReservationStatus.approved:
                reservation.status = ReservationStatus.completed
                updated += 1
        return updated

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


class RecordingNotificationService:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def create(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [event.notification_type.value for event in self.events]
