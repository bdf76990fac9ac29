"""Desktop notifications through the platform's own notifier command.

- macOS: terminal-notifier if installed, osascript otherwise
- Linux: notify-send (libnotify)
- Windows: PowerShell toast (best-effort)

Pacing is left to the notification queue's global rate limit.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys

from .models import Notification

logger = logging.getLogger("filesentry")

APP_NAME = "filesentry"

_WINDOWS_TOAST = (
    "[Windows.UI.Notifications.ToastNotificationManager, "
    "Windows.UI.Notifications, ContentType = WindowsRuntime] | Out-Null; "
    "$xml = [Windows.UI.Notifications.ToastNotificationManager]::GetTemplateContent("
    "[Windows.UI.Notifications.ToastTemplateType]::ToastText02); "
    "$texts = $xml.GetElementsByTagName('text'); "
    "$texts[0].AppendChild($xml.CreateTextNode('{title}')) | Out-Null; "
    "$texts[1].AppendChild($xml.CreateTextNode('{body}')) | Out-Null; "
    "$toast = [Windows.UI.Notifications.ToastNotification]::new($xml); "
    "[Windows.UI.Notifications.ToastNotificationManager]::"
    "CreateToastNotifier('{app}').Show($toast)"
)


class DesktopNotifier:
    """Launch a desktop toast for a notification without waiting on it."""

    def __init__(self, platform: str | None = None):
        self._platform = platform or sys.platform
        self._has_terminal_notifier = (
            self._platform == "darwin"
            and shutil.which("terminal-notifier") is not None
        )

    def command(self, title: str, body: str) -> list[str] | None:
        """The argv that shows a toast here, or None if unsupported."""
        if self._platform == "darwin":
            if self._has_terminal_notifier:
                return [
                    "terminal-notifier",
                    "-title", title,
                    "-message", body,
                    "-group", APP_NAME,
                ]
            script = f'display notification "{_escape(body)}" with title "{_escape(title)}"'
            return ["osascript", "-e", script]
        if self._platform.startswith("linux"):
            return ["notify-send", f"--app-name={APP_NAME}", title, body]
        if self._platform == "win32":
            script = _WINDOWS_TOAST.format(
                title=_escape(title), body=_escape(body), app=APP_NAME
            )
            return ["powershell", "-Command", script]
        return None

    def notify(self, notification: Notification) -> bool:
        """True once the notifier command is launched.

        False when the platform has no notifier or the command cannot start;
        the router turns that into a DispatchError.
        """
        argv = self.command(notification.title, notification.message)
        if argv is None:
            logger.debug(f"Desktop notifications unsupported on {self._platform}")
            return False
        try:
            subprocess.Popen(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.warning(f"Desktop notification for {notification.id} failed: {e}")
            return False
        return True


def _escape(text: str) -> str:
    """Escape quotes and backslashes for script embedding."""
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("'", "\\'")
    )
