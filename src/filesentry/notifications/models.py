"""Notification payloads and queued notifications."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..config import Channel


def new_notification_id() -> str:
    return f"ntf_{uuid.uuid4().hex[:12]}"


class NotificationStatus(str, Enum):
    QUEUED = "queued"
    DISPATCHING = "dispatching"
    DELIVERED = "delivered"
    RETRYING = "retrying"
    DROPPED = "dropped"


class NotificationPayload(BaseModel):
    title: str
    message: str
    rule_id: str | None = None
    file_path: str | None = None


class Notification(BaseModel):
    id: str = Field(default_factory=new_notification_id)
    title: str
    message: str
    rule_id: str | None = None
    file_path: str | None = None
    channels: set[Channel] = Field(
        default_factory=lambda: {Channel.STDOUT, Channel.DESKTOP}
    )
    attempts: int = 0  # Retries consumed so far
    status: NotificationStatus = NotificationStatus.QUEUED
    enqueued_at: datetime = Field(default_factory=datetime.now)

    def ordered_channels(self) -> list[Channel]:
        """Channels in a stable order: stdout, desktop, webhook."""
        return [c for c in Channel if c in self.channels]
