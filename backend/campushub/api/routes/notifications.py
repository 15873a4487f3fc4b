from fastapi import APIRouter, Depends, Query

from campushub.api.deps import get_notification_inbox
from campushub.models.notification import NotificationType
from campushub.schemas.notification import NotificationBulkResult, NotificationOut
from campushub.services.notifications import NotificationInbox

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    notification_type: NotificationType | None = Query(default=None),
    is_read: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    inbox: NotificationInbox = Depends(get_notification_inbox),
) -> list[NotificationOut]:
    return inbox.list_notifications(notification_type=notification_type, is_read=is_read, limit=limit, offset=offset)


@router.get("/notifications/unread-count")
def unread_notification_count(inbox: NotificationInbox = Depends(get_notification_inbox)) -> dict[str, int]:
    return {"unread": inbox.unread_count()}


@router.post("/notifications/read-all", response_model=NotificationBulkResult)
def mark_all_notifications_read(inbox: NotificationInbox = Depends(get_notification_inbox)) -> NotificationBulkResult:
    return NotificationBulkResult(updated=inbox.mark_all_read())


@router.delete("/notifications", response_model=NotificationBulkResult)
def delete_all_notifications(inbox: NotificationInbox = Depends(get_notification_inbox)) -> NotificationBulkResult:
    return NotificationBulkResult(deleted=inbox.delete_all())


@router.get("/notifications/{notification_id}", response_model=NotificationOut)
def get_notification(
    notification_id: str,
    inbox: NotificationInbox = Depends(get_notification_inbox),
) -> NotificationOut:
    return inbox.get(notification_id)


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: str,
    inbox: NotificationInbox = Depends(get_notification_inbox),
) -> NotificationOut:
    return inbox.mark_read(notification_id)


@router.delete("/notifications/{notification_id}", response_model=NotificationBulkResult)
def delete_notification(
    notification_id: str,
    inbox: NotificationInbox = Depends(get_notification_inbox),
) -> NotificationBulkResult:
    inbox.delete(notification_id)
    return NotificationBulkResult(deleted=1)
