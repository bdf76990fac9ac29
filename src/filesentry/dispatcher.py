"""Event dispatcher: runs every active rule against each file event.

For each rule in the working-set snapshot, in insertion order:

  match    -> MatchRecord to the recorder, Notification to the queue
  no match -> nothing
  raises   -> FailureRecord (message + traceback) to the failure sink

A failing rule never stops the remaining rules for the same event.
"""

from __future__ import annotations

import asyncio
import logging
import os
import traceback
from collections.abc import Iterable
from pathlib import Path

from .config import Channel
from .events import FileEvent
from .history import FailureSink, MatchRecorder
from .notifications.models import NotificationPayload
from .notifications.queue import NotificationQueue
from .rules.engine import RulesEngine
from .rules.evaluator import evaluate
from .rules.models import MatchRecord, Rule

logger = logging.getLogger("filesentry")

NOTIFICATION_TITLE = "FileSentry Alert"


def relative_to_root(path: str, root: str | Path) -> str:
    """POSIX path of ``path`` relative to ``root``, symlinks resolved on both sides.

    Paths on another drive (Windows) are returned unchanged.
    """
    try:
        rel = os.path.relpath(os.path.realpath(path), os.path.realpath(root))
    except ValueError:
        return Path(path).as_posix()
    return Path(rel).as_posix()


class EventDispatcher:
    """Matches file events against the rule working set."""

    def __init__(
        self,
        engine: RulesEngine,
        recorder: MatchRecorder,
        failures: FailureSink,
        queue: NotificationQueue,
        root: str | Path = ".",
        channels: Iterable[Channel] = (Channel.STDOUT, Channel.DESKTOP),
    ):
        self._engine = engine
        self._recorder = recorder
        self._failures = failures
        self._queue = queue
        self._root = Path(root)
        self._channels = frozenset(channels)

    @property
    def root(self) -> Path:
        return self._root

    def handle(self, event: FileEvent) -> list[MatchRecord]:
        """Evaluate one event against all active rules. Never raises.

        Returns the match records created, in rule order.
        """
        rules = self._engine.snapshot()
        rel_path = relative_to_root(event.path, self._root)
        logger.debug(f"Processing {event.type.value} {rel_path} against {len(rules)} rules")

        matches: list[MatchRecord] = []
        for rule in rules:
            try:
                if not evaluate(event, rule.predicate, relative_path=rel_path):
                    continue
                matches.append(self._on_match(rule, event, rel_path))
            except Exception as e:
                logger.error(f"Error evaluating rule {rule.id}: {e}")
                self._failures.record_failure(
                    error_message=str(e),
                    stack=traceback.format_exc(),
                    rule_id=rule.id,
                )
        return matches

    def _on_match(self, rule: Rule, event: FileEvent, rel_path: str) -> MatchRecord:
        logger.info(f"Rule matched: {rule.id} file={rel_path}")
        match = MatchRecord(
            rule_id=rule.id,
            file_path=event.path,
            detail=f"Matched rule: {rule.natural_language}",
        )
        self._recorder.record(match)
        self._queue.notify(
            NotificationPayload(
                title=NOTIFICATION_TITLE,
                message=f"Rule triggered: {rule.natural_language}\nFile: {rel_path}",
                rule_id=rule.id,
                file_path=event.path,
            ),
            channels=self._channels,
        )
        return match

    async def consume(self, events: asyncio.Queue[FileEvent]) -> None:
        """Handle events from the watcher queue until cancelled."""
        while True:
            event = await events.get()
            try:
                self.handle(event)
            finally:
                events.task_done()
