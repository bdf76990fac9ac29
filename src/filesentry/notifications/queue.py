"""Rate-limited notification queue with webhook retries.

``notify()`` only appends; delivery happens on a periodic tick:

- empty queue: nothing to do
- less than one rate-limit window since the last dispatch: defer
- otherwise pop the head (strict FIFO) and send on every channel

The rate limit is global, one dispatch per window across all rules and
channels. Channels are attempted independently. Only webhook failures
are retried: the notification goes back to the tail with just the
webhook channel until ``max_retries`` retries are spent, then it is
dropped and logged.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from ..config import Channel, QueueConfig
from ..exceptions import DispatchError
from .models import Notification, NotificationPayload, NotificationStatus

if TYPE_CHECKING:
    from . import ChannelRouter

logger = logging.getLogger("filesentry")

DEFAULT_CHANNELS = frozenset({Channel.STDOUT, Channel.DESKTOP})


class NotificationQueue:
    """FIFO notification buffer drained by a background task.

    Features:
    - Unbounded by default; ``max_size`` > 0 drops the oldest entry on overflow
    - Injectable ``clock`` so tests can drive ``tick()`` without sleeping
    - Clean ``stop()``: the in-flight tick finishes, queued items are discarded
    """

    def __init__(
        self,
        router: ChannelRouter,
        *,
        tick_seconds: float = 0.1,
        rate_limit_seconds: float = 1.0,
        max_retries: int = 3,
        max_size: int = 0,
        default_channels: Iterable[Channel] = DEFAULT_CHANNELS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._router = router
        self._tick = tick_seconds
        self._window = rate_limit_seconds
        self._max_retries = max_retries
        self._max_size = max_size
        self._default_channels = frozenset(default_channels)
        self._clock = clock

        self._queue: deque[Notification] = deque()
        self._lock = threading.Lock()
        self._last_dispatch: float | None = None
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Event | None = None
        self.stats = {"delivered": 0, "retried": 0, "dropped": 0, "overflow": 0}

    @classmethod
    def from_config(
        cls,
        router: ChannelRouter,
        config: QueueConfig,
        default_channels: Iterable[Channel] = DEFAULT_CHANNELS,
        clock: Callable[[], float] = time.monotonic,
    ) -> NotificationQueue:
        return cls(
            router,
            tick_seconds=config.tick_ms / 1000,
            rate_limit_seconds=config.rate_limit_ms / 1000,
            max_retries=config.max_retries,
            max_size=config.max_size,
            default_channels=default_channels,
            clock=clock,
        )

    # ── Producer side ──────────────────────────────────────────

    def notify(
        self,
        payload: NotificationPayload,
        channels: Iterable[Channel] | None = None,
    ) -> Notification:
        """Queue a notification. Never blocks on I/O."""
        notification = Notification(
            title=payload.title,
            message=payload.message,
            rule_id=payload.rule_id,
            file_path=payload.file_path,
            channels=set(channels) if channels is not None else set(self._default_channels),
        )
        with self._lock:
            self._append(notification)
        return notification

    def _append(self, notification: Notification) -> None:
        if self._max_size and len(self._queue) >= self._max_size:
            dropped = self._queue.popleft()
            dropped.status = NotificationStatus.DROPPED
            self.stats["overflow"] += 1
            logger.warning(f"Notification queue full, dropped oldest: {dropped.id}")
        self._queue.append(notification)

    def size(self) -> int:
        with self._lock:
            return len(self._queue)

    def pending(self) -> list[Notification]:
        """Snapshot of queued notifications, head first."""
        with self._lock:
            return list(self._queue)

    # ── Drain side ─────────────────────────────────────────────

    async def tick(self) -> Notification | None:
        """Run one drain step. Returns the dispatched notification, if any."""
        with self._lock:
            if not self._queue:
                return None
            now = self._clock()
            if self._last_dispatch is not None and now - self._last_dispatch < self._window:
                logger.debug("Notification rate-limited, deferring to next tick")
                return None
            item = self._queue.popleft()
            self._last_dispatch = now
            item.status = NotificationStatus.DISPATCHING

        await self._dispatch(item)
        return item

    async def _dispatch(self, item: Notification) -> None:
        webhook_failed = False
        other_failed = False
        for channel in item.ordered_channels():
            try:
                await self._router.send(channel, item)
            except DispatchError as e:
                logger.warning(f"Dispatch failed on {channel.value}: {e}")
                if channel == Channel.WEBHOOK:
                    webhook_failed = True
                else:
                    other_failed = True
            except Exception:
                logger.exception(f"Unexpected error on {channel.value} for {item.id}")
                if channel == Channel.WEBHOOK:
                    webhook_failed = True
                else:
                    other_failed = True

        if webhook_failed:
            if item.attempts < self._max_retries:
                item.attempts += 1
                item.channels = {Channel.WEBHOOK}
                item.status = NotificationStatus.RETRYING
                self.stats["retried"] += 1
                with self._lock:
                    self._append(item)
                logger.info(
                    f"Webhook retry {item.attempts}/{self._max_retries} queued for {item.id}"
                )
                return
            item.status = NotificationStatus.DROPPED
            self.stats["dropped"] += 1
            logger.error(
                f"Notification {item.id} dropped after {item.attempts + 1} webhook attempts"
            )
            return

        if other_failed:
            item.status = NotificationStatus.DROPPED
            self.stats["dropped"] += 1
            return

        item.status = NotificationStatus.DELIVERED
        self.stats["delivered"] += 1
        logger.info(f"Notification dispatched: {item.id} ({item.title})")

    # ── Lifecycle ──────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic drain task on the running event loop."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="notification-queue")

    async def _run(self) -> None:
        assert self._stopping is not None
        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Notification queue tick failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._tick)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        """Let the in-flight tick finish, then halt. Pending items are discarded."""
        if self._task is None or self._stopping is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        discarded = self.size()
        if discarded:
            logger.info(f"Notification queue stopped with {discarded} pending discarded")
