"""Notification delivery for matched rules and ad hoc messages.

Channels:
- "stdout": JSON line on standard output
- "desktop": OS-native desktop notification (macOS / Linux / Windows)
- "webhook": HTTP POST of a JSON payload (the only retried channel)
"""

from __future__ import annotations

__all__ = [
    "ChannelRouter",
    "Notification",
    "NotificationPayload",
    "NotificationQueue",
    "NotificationStatus",
]

import logging

from ..config import Channel, NotificationsConfig
from ..exceptions import DispatchError
from .desktop import DesktopNotifier
from .models import Notification, NotificationPayload, NotificationStatus
from .queue import NotificationQueue
from .stdout import StdoutNotifier
from .webhook import WebhookNotifier

logger = logging.getLogger("filesentry")


class ChannelRouter:
    """Sends one notification to one channel."""

    def __init__(
        self,
        config: NotificationsConfig,
        stdout: StdoutNotifier | None = None,
        desktop: DesktopNotifier | None = None,
        webhook: WebhookNotifier | None = None,
    ):
        self._config = config
        self._stdout = stdout or StdoutNotifier()
        self._desktop = desktop or (DesktopNotifier() if config.desktop_enabled else None)
        self._webhook = webhook or WebhookNotifier(
            default_url=config.webhook_url,
            timeout_seconds=config.webhook_timeout_seconds,
        )

    async def send(self, channel: Channel, notification: Notification) -> None:
        """Deliver on ``channel``. Raises DispatchError if the send failed."""
        if channel == Channel.STDOUT:
            ok = self._stdout.notify(notification)
        elif channel == Channel.DESKTOP:
            if self._desktop is None:
                logger.debug("Desktop notification requested but desktop_enabled=False")
                return
            ok = self._desktop.notify(notification)
        elif channel == Channel.WEBHOOK:
            if not self._webhook.url:
                logger.warning(f"No webhook URL configured, skipping webhook for {notification.id}")
                return
            ok = await self._webhook.notify(notification)
        else:
            raise DispatchError(f"Unknown channel: {channel}", channel=str(channel))

        if not ok:
            raise DispatchError(
                f"{channel.value} delivery failed for {notification.id}",
                channel=channel.value,
            )

    async def close(self) -> None:
        """Clean up resources."""
        await self._webhook.close()
