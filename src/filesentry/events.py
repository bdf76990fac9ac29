"""File-system events as delivered by the watcher."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class EventType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"


class FileEvent(BaseModel):
    type: EventType
    path: str
    content: str | None = None  # Only for create/update when readable as UTF-8
    dest_path: str | None = None  # Move destination, when known
    timestamp: datetime = Field(default_factory=datetime.now)
