from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

NotificationType = Literal["info", "application"]
ActionStatus = Literal["pending", "accepted", "rejected"]


class NotificationOut(BaseModel):
    id: str
    recipient_id: str
    recipient_role: str
    message: str
    read: bool = False
    type: NotificationType = "info"
    related_job_id: str | None = None
    related_user_id: str | None = None
    action_status: ActionStatus | None = None
    created_at: datetime


class InboxOut(BaseModel):
    notifications: list[NotificationOut] = Field(default_factory=list)
    unread_count: int = 0
    poll_interval_seconds: int


class NotificationPatchRequest(BaseModel):
    read: bool
