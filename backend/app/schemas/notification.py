"""Notification and realtime channel contracts."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.schemas.common import Page


class NotificationResponse(BaseModel):
    id: int
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationPage(Page[NotificationResponse]):
    unread_count: int = 0


class PushTokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)


class ChannelAuthResponse(BaseModel):
    auth: str
    channel_data: Optional[str] = None


class ReadAllResponse(BaseModel):
    updated: int
