"""Webhook notification delivery.

POSTs a JSON payload to the configured URL. A non-2xx/3xx response or a
transport error counts as a failed send; the queue decides on retries.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import aiohttp

from .models import Notification

logger = logging.getLogger("filesentry")


class WebhookNotifier:
    """POST structured JSON to a URL."""

    def __init__(self, default_url: str = "", timeout_seconds: float = 15.0):
        self._default_url = default_url
        self._timeout = timeout_seconds
        self._session: aiohttp.ClientSession | None = None

    @property
    def url(self) -> str:
        return self._default_url

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _build_payload(self, notification: Notification) -> dict:
        payload: dict = {
            "event": "notification",
            "id": notification.id,
            "title": notification.title,
            "message": notification.message,
            "attempt": notification.attempts + 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if notification.rule_id:
            payload["event"] = "rule_matched"
            payload["rule_id"] = notification.rule_id
        if notification.file_path:
            payload["file_path"] = notification.file_path
        return payload

    async def notify(self, notification: Notification, url: str = "") -> bool:
        """POST notification JSON to the webhook URL. Returns True on success."""
        target_url = url or self._default_url
        if not target_url:
            return False

        session = self._get_session()
        payload = self._build_payload(notification)

        try:
            async with session.post(target_url, json=payload) as resp:
                ok = resp.status < 400

            if ok:
                logger.info(f"Webhook sent: {notification.id} → {target_url}")
            else:
                logger.warning(f"Webhook failed: HTTP {resp.status} → {target_url}")
            return ok

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Webhook error: {e!r}")
            return False

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session:
            await self._session.close()
            self._session = None
