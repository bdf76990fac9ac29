"""Daemon wiring: store -> working set -> dispatcher -> queue -> channels."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime

from .config import Channel, FileSentryConfig, validate_config
from .dispatcher import EventDispatcher
from .events import FileEvent
from .history import FailureSink, HistoryStore, MatchRecorder
from .notifications import ChannelRouter
from .notifications.models import Notification, NotificationPayload
from .notifications.queue import NotificationQueue
from .rules.engine import RulesEngine
from .rules.models import Predicate, Rule
from .rules.store import RulesStore
from .rules.translator import PredicateTranslator
from .watcher import FileWatcher, RulesFileWatcher, resolve_root

logger = logging.getLogger("filesentry")


def new_rule_id() -> str:
    return f"r_{uuid.uuid4().hex[:12]}"


def rule_channels(config: FileSentryConfig) -> list[Channel]:
    """Channels for rule-match notifications."""
    channels = list(config.notifications.default_channels)
    if config.notifications.webhook_url and Channel.WEBHOOK not in channels:
        channels.append(Channel.WEBHOOK)
    return channels


class Daemon:
    """Owns every long-lived component and their lifecycle."""

    def __init__(
        self,
        config: FileSentryConfig,
        router: ChannelRouter | None = None,
        translator: PredicateTranslator | None = None,
    ):
        self.config = validate_config(config)
        self.store = RulesStore(config.rules_file)
        self.history = HistoryStore(config.data_dir)
        self.engine = RulesEngine()
        self.root = resolve_root(config.watch.root)
        self.router = router or ChannelRouter(config.notifications)
        self.queue = NotificationQueue.from_config(
            self.router,
            config.queue,
            default_channels=config.notifications.default_channels,
        )
        self.dispatcher = EventDispatcher(
            engine=self.engine,
            recorder=MatchRecorder(self.history),
            failures=FailureSink(self.history),
            queue=self.queue,
            root=self.root,
            channels=rule_channels(config),
        )
        self.translator = translator or PredicateTranslator(config.translator)
        self.rules_watcher = RulesFileWatcher(self.store.path, self.reload_rules)
        self.events: asyncio.Queue[FileEvent] | None = None
        self._watcher: FileWatcher | None = None
        self._consumer: asyncio.Task | None = None

    # ── Rules ──────────────────────────────────────────────────

    def reload_rules(self) -> None:
        """Swap in the active rules currently in the store."""
        self.engine.reload(self.store)
        logger.info(f"Rules reloaded: {len(self.engine.snapshot())} active")

    async def create_rule(
        self, natural_language: str, predicate: Predicate | None = None
    ) -> Rule:
        """Author a rule. Without an explicit predicate the LLM translates it."""
        if predicate is None:
            predicate = await self.translator.translate(natural_language)
        rule = Rule(
            id=new_rule_id(),
            natural_language=natural_language,
            predicate=predicate,
            created_at=datetime.now(),
        )
        self.store.save(rule)
        self.reload_rules()
        logger.info(f"Rule created: {rule.id} ({natural_language})")
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        removed = self.store.delete(rule_id)
        if removed:
            self.reload_rules()
            logger.info(f"Rule deleted: {rule_id}")
        return removed

    def set_rule_active(self, rule_id: str, active: bool) -> bool:
        changed = self.store.set_active(rule_id, active)
        if changed:
            self.reload_rules()
        return changed

    # ── Entry points ───────────────────────────────────────────

    def handle(self, event: FileEvent) -> None:
        self.dispatcher.handle(event)

    def notify(
        self, payload: NotificationPayload, channels: list[Channel] | None = None
    ) -> Notification:
        return self.queue.notify(payload, channels)

    # ── Lifecycle ──────────────────────────────────────────────

    async def start(self, watch: bool = True) -> None:
        self.reload_rules()
        self.queue.start()
        self.events = asyncio.Queue()
        self._consumer = asyncio.create_task(
            self.dispatcher.consume(self.events), name="event-dispatcher"
        )
        if watch:
            self._watcher = FileWatcher(self.config.watch, self.events, root=self.root)
            self._watcher.start()
            self.rules_watcher.start()
        logger.info("Daemon started")

    async def stop(self) -> None:
        self.rules_watcher.stop()
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        await self.queue.stop()
        await self.router.close()
        await self.translator.close()
        logger.info("Daemon stopped")
