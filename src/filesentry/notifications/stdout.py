"""Console notification: one JSON line per notification."""

from __future__ import annotations

import json
import sys
from typing import TextIO

from .models import Notification


class StdoutNotifier:
    def __init__(self, stream: TextIO | None = None):
        self._stream = stream

    def notify(self, notification: Notification) -> bool:
        stream = self._stream or sys.stdout
        line = json.dumps(
            {
                "type": "NOTIFICATION",
                "id": notification.id,
                "title": notification.title,
                "message": notification.message,
                "rule_id": notification.rule_id,
                "file_path": notification.file_path,
            }
        )
        stream.write(line + "\n")
        stream.flush()
        return True
