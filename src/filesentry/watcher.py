"""File-system watcher adapter.

Wraps a watchdog Observer and turns its callbacks into FileEvents pushed
onto an ``asyncio.Queue``. watchdog calls back on its own thread, so
events cross into the event loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from .config import WatchConfig
from .events import EventType, FileEvent

logger = logging.getLogger("filesentry")

_EVENT_TYPES = {
    "created": EventType.CREATE,
    "modified": EventType.UPDATE,
    "deleted": EventType.DELETE,
    "moved": EventType.MOVE,
}


def read_text_content(path: Path, max_bytes: int) -> str | None:
    """File content as UTF-8, or None if unreadable, binary, or too large."""
    try:
        if path.stat().st_size > max_bytes:
            return None
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def resolve_root(root: str) -> Path:
    """Absolute watch root with symlinks resolved, as watchdog reports it."""
    return Path(root).expanduser().resolve()


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher | RulesFileWatcher):
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._watcher.submit(event)


class FileWatcher:
    """Watch a directory tree and feed FileEvents into a queue."""

    def __init__(
        self,
        config: WatchConfig,
        events: asyncio.Queue[FileEvent],
        loop: asyncio.AbstractEventLoop | None = None,
        root: Path | None = None,
    ):
        self._config = config
        self._root = root or resolve_root(config.root)
        self._events = events
        self._loop = loop
        self._observer: Observer | None = None
        self._ignore = set(config.ignore)

    @property
    def root(self) -> Path:
        return self._root

    def is_ignored(self, path: str) -> bool:
        try:
            parts = Path(path).resolve().relative_to(self._root).parts
        except ValueError:
            parts = Path(path).parts
        return any(part in self._ignore for part in parts)

    def to_file_event(self, event: FileSystemEvent) -> FileEvent | None:
        """Translate a watchdog event. Returns None for events we skip."""
        if event.is_directory:
            return None
        event_type = _EVENT_TYPES.get(event.event_type)
        if event_type is None:
            return None
        src = str(event.src_path)
        if self.is_ignored(src):
            return None

        content = None
        if self._config.read_content and event_type in (EventType.CREATE, EventType.UPDATE):
            content = read_text_content(Path(src), self._config.max_content_bytes)

        dest = None
        if isinstance(event, FileSystemMovedEvent):
            dest = str(event.dest_path)
        return FileEvent(type=event_type, path=src, content=content, dest_path=dest)

    def submit(self, event: FileSystemEvent) -> None:
        """Called on the watchdog thread."""
        file_event = self.to_file_event(event)
        if file_event is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._events.put_nowait, file_event)

    def start(self) -> None:
        if self._observer is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_QueueingHandler(self), str(self._root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self._root}")

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("Watcher stopped")


class RulesFileWatcher:
    """Call ``on_change`` on the event loop whenever the rules file changes.

    Watches the file's directory non-recursively, so atomic saves that
    replace the file through a rename are seen too.
    """

    def __init__(
        self,
        path: str | Path,
        on_change: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self._path = Path(path).expanduser().resolve()
        self._on_change = on_change
        self._loop = loop
        self._observer: Observer | None = None

    @property
    def path(self) -> Path:
        return self._path

    def concerns_rules_file(self, event: FileSystemEvent) -> bool:
        if event.is_directory or event.event_type not in _EVENT_TYPES:
            return False
        paths = [event.src_path]
        if isinstance(event, FileSystemMovedEvent):
            paths.append(event.dest_path)
        return any(Path(str(p)).resolve() == self._path for p in paths)

    def submit(self, event: FileSystemEvent) -> None:
        """Called on the watchdog thread."""
        if self._loop is None or not self.concerns_rules_file(event):
            return
        self._loop.call_soon_threadsafe(self._on_change)

    def start(self) -> None:
        if self._observer is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(_QueueingHandler(self), str(self._path.parent), recursive=False)
        observer.start()
        self._observer = observer
        logger.info(f"Watching rules file {self._path}")

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
