from datetime import datetime

from pydantic import BaseModel

from campushub.models.notification import NotificationPriority, NotificationType


class NotificationOut(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    notification_type: NotificationType
    priority: NotificationPriority
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationBulkResult(BaseModel):
    updated: int = 0
    deleted: int = 0
