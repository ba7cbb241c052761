"""Notification Pydantic schemas — push events and inbox responses."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from hrms.common.constants import NotificationType
from hrms.common.pagination import PaginationMeta


# ── Push event (handed to the Notifier) ─────────────────────────────

class NotificationEvent(BaseModel):
    """A state change worth telling an employee about."""

    type: NotificationType
    title: str
    message: str
    leave_request_id: Optional[uuid.UUID] = None
    # Client hint only: refresh lists, no inbox entry
    refresh_only: bool = False
    data: dict[str, Any] = Field(default_factory=dict)


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    leave_request_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    meta: NotificationListMeta
