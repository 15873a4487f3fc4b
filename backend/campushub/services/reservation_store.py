"""Reservation and resource persistence.

``ReservationRepository`` is the storage seam the lifecycle engine and the
expiry reconciler depend on. ``SqlAlchemyReservationRepository`` is the
durable implementation used by the API; the in-memory implementation in
``campushub.services.memory_store`` backs engine tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campushub.core.exceptions import StorageUnavailableError
from campushub.models.reservation import Reservation, ReservationStatus
from campushub.models.resource import Resource
from campushub.models.user import User, UserRole

logger = logging.getLogger(__name__)


class ReservationRepository(Protocol):
    def get_resource(self, resource_id: str) -> Resource | None: ...

    def get_reservation(self, reservation_id: str) -> Reservation | None: ...

    def get_user_role(self, user_id: str) -> UserRole | None: ...

    def add_reservation(self, reservation: Reservation) -> Reservation: ...

    def save_reservation(self, reservation: Reservation) -> Reservation: ...

    def delete_reservation(self, reservation: Reservation) -> None: ...

    def list_reservations(
        self,
        *,
        resource_id: str | None = None,
        user_id: str | None = None,
        statuses: Iterable[ReservationStatus] | None = None,
    ) -> list[Reservation]: ...

    def list_overlapping(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        statuses: Iterable[ReservationStatus],
    ) -> list[Reservation]: ...

    def list_approved_covering(self, now: datetime, *, resource_id: str | None = None) -> list[Reservation]: ...

    def list_expired_approved(self, now: datetime) -> list[Reservation]: ...

    def set_resource_availability(self, resource_id: str, available: bool) -> Resource | None: ...

    def mark_completed(self, reservation_ids: Iterable[str]) -> int: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage failure during %s", operation, exc_info=True)
        raise StorageUnavailableError(operation) from exc


class SqlAlchemyReservationRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    @property
    def session(self) -> Session:
        return self._db

    def get_resource(self, resource_id: str) -> Resource | None:
        with _storage_errors("get_resource"):
            return self._db.get(Resource, resource_id)

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        with _storage_errors("get_reservation"):
            return self._db.get(Reservation, reservation_id)

    def get_user_role(self, user_id: str) -> UserRole | None:
        with _storage_errors("get_user_role"):
            user = self._db.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user.role

    def add_reservation(self, reservation: Reservation) -> Reservation:
        with _storage_errors("add_reservation"):
            self._db.add(reservation)
            self._db.flush()
        return reservation

    def save_reservation(self, reservation: Reservation) -> Reservation:
        # The session does not autoflush; later queries in the same unit of work must see this change.
        with _storage_errors("save_reservation"):
            self._db.flush()
        return reservation

    def delete_reservation(self, reservation: Reservation) -> None:
        with _storage_errors("delete_reservation"):
            self._db.delete(reservation)
            self._db.flush()

    def list_reservations(
        self,
        *,
        resource_id: str | None = None,
        user_id: str | None = None,
        statuses: Iterable[ReservationStatus] | None = None,
    ) -> list[Reservation]:
        query = select(Reservation)
        if resource_id is not None:
            query = query.where(Reservation.resource_id == resource_id)
        if user_id is not None:
            query = query.where(Reservation.user_id == user_id)
        if statuses is not None:
            query = query.where(Reservation.status.in_(list(statuses)))
        query = query.order_by(Reservation.start_time.asc(), Reservation.created_at.asc())
        with _storage_errors("list_reservations"):
            return list(self._db.execute(query).scalars())

    def list_overlapping(
        self,
        resource_id: str,
        start_time: datetime,
        end_time: datetime,
        statuses: Iterable[ReservationStatus],
    ) -> list[Reservation]:
        query = select(Reservation).where(
            Reservation.resource_id == resource_id,
            Reservation.status.in_(list(statuses)),
            Reservation.start_time < end_time,
            Reservation.end_time > start_time,
        )
        with _storage_errors("list_overlapping"):
            return list(self._db.execute(query).scalars())

    def list_approved_covering(self, now: datetime, *, resource_id: str | None = None) -> list[Reservation]:
        query = select(Reservation).where(
            Reservation.status == ReservationStatus.approved,
            Reservation.start_time <= now,
            Reservation.end_time > now,
        )
        if resource_id is not None:
            query = query.where(Reservation.resource_id == resource_id)
        with _storage_errors("list_approved_covering"):
            return list(self._db.execute(query).scalars())

    def list_expired_approved(self, now: datetime) -> list[Reservation]:
        query = select(Reservation).where(
            Reservation.status == ReservationStatus.approved,
            Reservation.end_time < now,
        )
        with _storage_errors("list_expired_approved"):
            return list(self._db.execute(query).scalars())

    def set_resource_availability(self, resource_id: str, available: bool) -> Resource | None:
        with _storage_errors("set_resource_availability"):
            resource = self._db.get(Resource, resource_id)
            if resource is None:
                return None
            if resource.availability != available:
                resource.availability = available
                self._db.flush()
            return resource

    def mark_completed(self, reservation_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(reservation_ids))
        if not ids:
            return 0
        statement = (
            update(Reservation)
            .where(Reservation.id.in_(ids), Reservation.status == ReservationStatus.approved)
            .values(status=ReservationStatus.completed)
            .execution_options(synchronize_session="fetch")
        )
        with _storage_errors("mark_completed"):
            result = self._db.execute(statement)
            self._db.flush()
        return result.rowcount or 0

    def commit(self) -> None:
        with _storage_errors("commit"):
            self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()
