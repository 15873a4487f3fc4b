from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
import logging

from anyio import to_thread
from sqlalchemy.orm import Session

from campushub.core.exceptions import StorageUnavailableError
from campushub.models.notification import NotificationPriority, NotificationType
from campushub.models.reservation import Reservation
from campushub.models.resource import Resource
from campushub.models.user import UserRole
from campushub.services.conflict_service import resource_is_occupied
from campushub.services.notifications import (
    NotificationEvent,
    NotificationService,
    SqlNotificationService,
    dispatch_notifications,
)
from campushub.services.reservation_rules import as_utc, is_currently_active, utc_now
from campushub.services.reservation_store import ReservationRepository, SqlAlchemyReservationRepository

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    ran_at: datetime
    completed: list[Reservation] = field(default_factory=list)
    freed_resources: list[Resource] = field(default_factory=list)
    occupied_resources: list[Resource] = field(default_factory=list)
    failed_resource_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.completed or self.freed_resources or self.occupied_resources or self.failed_resource_ids)

    def summary(self) -> dict:
        return {
            "ran_at": self.ran_at.isoformat(),
            "completed": len(self.completed),
            "freed_resources": len(self.freed_resources),
            "occupied_resources": len(self.occupied_resources),
            "failed_resources": len(self.failed_resource_ids),
        }


def _set_availability(
    repository: ReservationRepository,
    resource_id: str,
    available: bool,
    result: ReconciliationResult,
) -> Resource | None:
    """Flip one resource in its own commit; returns it only when the flag changed."""
    try:
        resource = repository.get_resource(resource_id)
        if resource is None or resource.availability == available:
            return None
        repository.set_resource_availability(resource_id, available)
        repository.commit()
    except StorageUnavailableError:
        repository.rollback()
        result.failed_resource_ids.append(resource_id)
        logger.error("Availability update failed for resource %s; retrying next tick", resource_id)
        return None
    return resource


def run_expiry_reconciliation(
    repository: ReservationRepository,
    notifier: NotificationService | None = None,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Complete expired approved reservations and re-derive resource availability.

    Availability is checked against the expiring set explicitly excluded, before
    those reservations are marked completed, so the check never depends on the
    bulk update having run. Running twice with the same ``now`` is a no-op the
    second time.
    """
    current = as_utc(now) if now is not None else utc_now()
    result = ReconciliationResult(ran_at=current)
    events: list[NotificationEvent] = []

    expired = repository.list_expired_approved(current)
    expired_ids = [item.id for item in expired]

    for resource_id in dict.fromkeys(item.resource_id for item in expired):
        try:
            occupied = resource_is_occupied(repository, resource_id, current, exclude_reservation_ids=expired_ids)
        except StorageUnavailableError:
            repository.rollback()
            result.failed_resource_ids.append(resource_id)
            logger.error("Occupancy check failed for resource %s; retrying next tick", resource_id)
            continue
        if occupied:
            continue
        resource = _set_availability(repository, resource_id, True, result)
        if resource is None:
            continue
        result.freed_resources.append(resource)
        events.append(
            NotificationEvent(
                notification_type=NotificationType.resource_available,
                title="Resource Available",
                message=f"Resource {resource.name} is now available",
                priority=NotificationPriority.low,
                roles=(UserRole.admin,),
                related_entity_type="resource",
                related_entity_id=resource_id,
            )
        )

    if expired_ids:
        try:
            repository.mark_completed(expired_ids)
            repository.commit()
        except StorageUnavailableError:
            repository.rollback()
            logger.error("Completing %d expired reservation(s) failed; retrying next tick", len(expired_ids))
        else:
            result.completed = expired

    # Approved bookings that started since the last tick take their resource offline.
    try:
        covering = repository.list_approved_covering(current)
    except StorageUnavailableError:
        repository.rollback()
        covering = []
        logger.error("Scanning started reservations failed; retrying next tick")
    started = [item for item in covering if is_currently_active(item, current)]
    for resource_id in dict.fromkeys(item.resource_id for item in started):
        resource = _set_availability(repository, resource_id, False, result)
        if resource is not None:
            result.occupied_resources.append(resource)

    dispatch_notifications(notifier, events)
    if result.changed:
        logger.info("Reservation sweep finished: %s", result.summary())
    return result


class ExpiryReconciler:
    """Runs ``run_expiry_reconciliation`` on a fixed interval in the background."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        interval_seconds: float = 300,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._task: asyncio.Task | None = None
        self.running = False
        self.last_summary: dict | None = None

    async def start(self) -> None:
        if self.running:
            logger.warning("Reservation sweep already running")
            return
        self.running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Reservation sweep started (interval %ss)", self.interval_seconds)

    async def stop(self) -> None:
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Reservation sweep stopped")

    def run_once(self, now: datetime | None = None) -> dict:
        db = self._session_factory()
        try:
            result = run_expiry_reconciliation(
                SqlAlchemyReservationRepository(db),
                SqlNotificationService(db),
                now if now is not None else self._clock(),
            )
            self.last_summary = result.summary()
            return self.last_summary
        finally:
            db.close()

    async def _sweep_loop(self) -> None:
        while self.running:
            try:
                await to_thread.run_sync(self.run_once)
            except Exception:
                logger.error("Reservation sweep tick failed", exc_info=True)
            await asyncio.sleep(self.interval_seconds)
