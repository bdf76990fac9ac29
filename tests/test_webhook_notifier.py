"""Tests for webhook notification delivery."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import aiohttp
import pytest

from filesentry.config import Channel
from filesentry.notifications.models import Notification
from filesentry.notifications.webhook import WebhookNotifier


def _make_notification(rule_id: str | None = "r_test", attempts: int = 0) -> Notification:
    return Notification(
        title="FileSentry Alert",
        message="Rule triggered: axios\nFile: src/a.ts",
        rule_id=rule_id,
        file_path="/proj/src/a.ts" if rule_id else None,
        channels={Channel.WEBHOOK},
        attempts=attempts,
    )


def _mock_session(status: int = 200, captured: dict | None = None):
    @asynccontextmanager
    async def mock_post(url, json=None):
        if captured is not None:
            captured["url"] = url
            captured["json"] = json
        resp = AsyncMock()
        resp.status = status
        yield resp

    session = AsyncMock()
    session.post = mock_post
    return session


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_no_url_returns_false(self):
        notifier = WebhookNotifier()
        assert await notifier.notify(_make_notification()) is False
        await notifier.close()

    @pytest.mark.asyncio
    async def test_json_payload_structure(self):
        notifier = WebhookNotifier("https://example.com/hook")
        captured: dict = {}
        notifier._session = _mock_session(200, captured)

        n = _make_notification(attempts=2)
        assert await notifier.notify(n) is True

        assert captured["url"] == "https://example.com/hook"
        payload = captured["json"]
        assert payload["event"] == "rule_matched"
        assert payload["id"] == n.id
        assert payload["title"] == "FileSentry Alert"
        assert payload["message"].startswith("Rule triggered")
        assert payload["rule_id"] == "r_test"
        assert payload["file_path"] == "/proj/src/a.ts"
        assert payload["attempt"] == 3
        assert "timestamp" in payload
        await notifier.close()

    @pytest.mark.asyncio
    async def test_ad_hoc_payload_has_no_rule_fields(self):
        notifier = WebhookNotifier("https://example.com/hook")
        captured: dict = {}
        notifier._session = _mock_session(200, captured)
        await notifier.notify(_make_notification(rule_id=None))
        assert captured["json"]["event"] == "notification"
        assert "rule_id" not in captured["json"]
        assert "file_path" not in captured["json"]
        await notifier.close()

    @pytest.mark.asyncio
    async def test_url_override(self):
        notifier = WebhookNotifier("https://example.com/default")
        captured: dict = {}
        notifier._session = _mock_session(200, captured)
        await notifier.notify(_make_notification(), url="https://other.example.com")
        assert captured["url"] == "https://other.example.com"
        await notifier.close()

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self):
        notifier = WebhookNotifier("https://example.com/hook")
        notifier._session = _mock_session(500)
        assert await notifier.notify(_make_notification()) is False
        await notifier.close()

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self):
        notifier = WebhookNotifier("https://example.com/hook")

        @asynccontextmanager
        async def failing_post(url, json=None):
            raise aiohttp.ClientConnectionError("refused")
            yield  # pragma: no cover

        session = AsyncMock()
        session.post = failing_post
        notifier._session = session
        assert await notifier.notify(_make_notification()) is False
        await notifier.close()

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        notifier = WebhookNotifier("https://example.com/hook")
        await notifier.close()
        assert notifier._session is None
