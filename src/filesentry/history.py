"""Append-only match and failure history.

Two JSON-lines files under the data directory:

- ``matches.jsonl``: one MatchRecord per (event, rule) pair that matched
- ``failures.jsonl``: one FailureRecord per rule evaluation that raised

Records are never rewritten. ``MatchRecorder`` and ``FailureSink`` are
the sinks the dispatcher talks to; both log storage errors instead of
raising so a broken disk never stops rule evaluation.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .exceptions import StorageError
from .rules.models import FailureRecord, MatchRecord

logger = logging.getLogger("filesentry")

_R = TypeVar("_R", bound=BaseModel)

# Process-local locks keyed by file path so concurrent appends never
# interleave within one line.
_FILE_LOCKS: dict[str, threading.Lock] = {}
_FILE_LOCKS_GUARD = threading.Lock()


def _lock_for_path(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _FILE_LOCKS_GUARD:
        lock = _FILE_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _FILE_LOCKS[key] = lock
        return lock


class HistoryStore:
    """JSON-lines persistence for match and failure records."""

    def __init__(self, data_dir: str = "~/.filesentry"):
        self._dir = Path(data_dir).expanduser()
        self._matches = self._dir / "matches.jsonl"
        self._failures = self._dir / "failures.jsonl"

    def append_match(self, record: MatchRecord) -> None:
        self._append(self._matches, record)

    def append_failure(self, record: FailureRecord) -> None:
        self._append(self._failures, record)

    def recent_matches(self, limit: int = 50) -> list[MatchRecord]:
        """Newest first."""
        return self._read(self._matches, MatchRecord, limit)

    def recent_failures(self, limit: int = 50) -> list[FailureRecord]:
        """Newest first."""
        return self._read(self._failures, FailureRecord, limit)

    def _append(self, path: Path, record: BaseModel) -> None:
        line = record.model_dump_json() + "\n"
        try:
            with _lock_for_path(path):
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as f:
                    f.write(line)
        except OSError as e:
            raise StorageError(f"Could not append to {path}: {e}") from e

    def _read(self, path: Path, model: type[_R], limit: int) -> list[_R]:
        if not path.exists():
            return []
        with _lock_for_path(path):
            lines = path.read_text(encoding="utf-8").splitlines()
        records: list[_R] = []
        for line in reversed(lines):
            if len(records) >= limit:
                break
            if not line.strip():
                continue
            try:
                records.append(model.model_validate_json(line))
            except ValidationError:
                logger.debug(f"Skipping unreadable history line in {path.name}")
        return records


class MatchRecorder:
    """Sink for confirmed matches."""

    def __init__(self, store: HistoryStore):
        self._store = store

    def record(self, match: MatchRecord) -> bool:
        """Persist a match. Returns False (and logs) if storage failed."""
        try:
            self._store.append_match(match)
            return True
        except StorageError as e:
            logger.error(f"Failed to record match for rule {match.rule_id}: {e}")
            return False


class FailureSink:
    """Sink for per-rule evaluation failures."""

    def __init__(self, store: HistoryStore):
        self._store = store

    def record_failure(
        self,
        error_message: str,
        stack: str = "",
        timestamp: datetime | None = None,
        rule_id: str | None = None,
    ) -> bool:
        record = FailureRecord(
            error_message=error_message,
            stack=stack,
            rule_id=rule_id,
            timestamp=timestamp or datetime.now(),
        )
        try:
            self._store.append_failure(record)
            return True
        except StorageError as e:
            logger.error(f"Failed to record failure ({error_message}): {e}")
            return False
