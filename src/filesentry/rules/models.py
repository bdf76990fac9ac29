"""Pydantic models for rules, predicates, and match history."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PredicateEventType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"
    ANY = "any"


class Predicate(BaseModel):
    """Structured match condition attached to a rule.

    ``content_pattern`` wrapped in slashes (``/console\\.log/``) is a regex
    body; anything else is a literal substring.
    """

    model_config = ConfigDict(frozen=True)

    path_pattern: str = "**"
    content_pattern: str | None = None
    event_type: PredicateEventType = PredicateEventType.ANY
    negation: bool = False


class Rule(BaseModel):
    id: str
    natural_language: str
    predicate: Predicate
    created_at: datetime = Field(default_factory=datetime.now)
    active: bool = True


class MatchRecord(BaseModel):
    rule_id: str
    file_path: str
    detail: str
    timestamp: datetime = Field(default_factory=datetime.now)


class FailureRecord(BaseModel):
    error_message: str
    stack: str = ""
    rule_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
