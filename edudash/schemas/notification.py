# edudash/schemas/notification.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationPublic(BaseModel):
    id: int
    user_id: int
    sender_id: int | None = None
    sender_name: str | None = None
    sender_role: str | None = None
    type: str
    title: str
    message: str
    read: bool
    action_url: str | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="extra")
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class NotificationSend(BaseModel):
    title: str
    message: str
    type: str = "info"
    action_url: str | None = None
    metadata: dict[str, Any] | None = None

    # exactly one target
    user_ids: list[int] | None = None
    role: str | None = None
    institution_id: str | None = None


class NotificationIds(BaseModel):
    ids: list[int]


class CountResult(BaseModel):
    success: bool = True
    count: int
