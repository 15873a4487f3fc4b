from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from campushub.core.exceptions import ForbiddenError, NotFoundError
from campushub.models.notification import Notification, NotificationPriority, NotificationType
from campushub.models.user import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    notification_type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.medium
    user_id: str | None = None
    roles: tuple[UserRole, ...] = field(default_factory=tuple)
    related_entity_type: str | None = None
    related_entity_id: str | None = None


class NotificationService(Protocol):
    def create(self, event: NotificationEvent) -> None: ...


def dispatch_notifications(notifier: NotificationService | None, events: Iterable[NotificationEvent]) -> int:
    """Deliver events after the triggering change has committed.

    Delivery is fire-and-forget: a failing event is logged and skipped.
    """
    if notifier is None:
        return 0
    delivered = 0
    for event in events:
        try:
            notifier.create(event)
            delivered += 1
        except Exception:
            logger.warning(
                "Notification delivery failed (%s for %s)",
                event.notification_type.value,
                event.related_entity_id,
                exc_info=True,
            )
    return delivered


def create_notification(
    db: Session,
    *,
    user_id: str,
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    priority: NotificationPriority = NotificationPriority.medium,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> Notification:
    record = Notification(
        user_id=user_id,
        title=title,
        message=message,
        notification_type=notification_type,
        priority=priority,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
    )
    db.add(record)
    db.flush()
    return record


def notify_users(
    db: Session,
    *,
    user_ids: list[str] | set[str] | tuple[str, ...],
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    priority: NotificationPriority = NotificationPriority.medium,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> list[Notification]:
    requested_ids = [item for item in dict.fromkeys(user_ids) if item]
    if not requested_ids:
        return []

    recipients = list(
        db.execute(
            select(User).where(
                User.id.in_(requested_ids),
                User.is_active.is_(True),
            )
        ).scalars()
    )
    return [
        create_notification(
            db,
            user_id=recipient.id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )
        for recipient in recipients
    ]


def notify_roles(
    db: Session,
    *,
    roles: list[UserRole] | set[UserRole] | tuple[UserRole, ...],
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.system,
    priority: NotificationPriority = NotificationPriority.medium,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
    exclude_user_id: str | None = None,
) -> list[Notification]:
    if not roles:
        return []
    recipients = list(
        db.execute(
            select(User).where(
                User.role.in_(list(roles)),
                User.is_active.is_(True),
            )
        ).scalars()
    )
    results: list[Notification] = []
    for recipient in recipients:
        if exclude_user_id and recipient.id == exclude_user_id:
            continue
        results.append(
            create_notification(
                db,
                user_id=recipient.id,
                title=title,
                message=message,
                notification_type=notification_type,
                priority=priority,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
            )
        )
    return results


class SqlNotificationService:
    """Persists each event as notification rows in its own commit."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def create(self, event: NotificationEvent) -> None:
        common = {
            "title": event.title,
            "message": event.message,
            "notification_type": event.notification_type,
            "priority": event.priority,
            "related_entity_type": event.related_entity_type,
            "related_entity_id": event.related_entity_id,
        }
        try:
            if event.user_id is not None:
                notify_users(self._db, user_ids=[event.user_id], **common)
            if event.roles:
                notify_roles(self._db, roles=event.roles, exclude_user_id=event.user_id, **common)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise


class NotificationInbox:
    """Read side of one user's notifications."""

    def __init__(self, db: Session, user_id: str) -> None:
        self._db = db
        self._user_id = user_id

    def list_notifications(
        self,
        *,
        notification_type: NotificationType | None = None,
        is_read: bool | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Notification]:
        query = (
            select(Notification)
            .where(Notification.user_id == self._user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        if notification_type is not None:
            query = query.where(Notification.notification_type == notification_type)
        if is_read is not None:
            query = query.where(Notification.is_read.is_(is_read))
        return list(self._db.execute(query.offset(offset).limit(limit)).scalars())

    def unread_count(self) -> int:
        query = select(func.count(Notification.id)).where(
            Notification.user_id == self._user_id,
            Notification.is_read.is_(False),
        )
        return int(self._db.execute(query).scalar_one())

    def get(self, notification_id: str, *, action: str = "access") -> Notification:
        notification = self._db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.user_id != self._user_id:
            raise ForbiddenError(f"Not authorized to {action} this notification")
        return notification

    def mark_read(self, notification_id: str) -> Notification:
        notification = self.get(notification_id, action="modify")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            self._db.commit()
            self._db.refresh(notification)
        return notification

    def mark_all_read(self) -> int:
        result = self._db.execute(
            update(Notification)
            .where(Notification.user_id == self._user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        self._db.commit()
        return result.rowcount or 0

    def delete(self, notification_id: str) -> None:
        notification = self.get(notification_id, action="delete")
        self._db.delete(notification)
        self._db.commit()

    def delete_all(self) -> int:
        result = self._db.execute(delete(Notification).where(Notification.user_id == self._user_id))
        self._db.commit()
        return result.rowcount or 0
