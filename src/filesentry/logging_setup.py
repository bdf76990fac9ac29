"""Logging setup for the daemon and CLI."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

logger = logging.getLogger("filesentry")

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(verbose: bool = False, log_dir: str | Path | None = None) -> None:
    """Console handler on stderr plus a best-effort rotating file log."""
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))

    handlers: list[logging.Handler] = [console]
    if log_dir is not None:
        try:
            path = Path(log_dir).expanduser()
            path.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path / "filesentry.log",
                maxBytes=5 * 1024 * 1024,
                backupCount=2,
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as e:
            print(f"Warning: file logging disabled ({e})", file=sys.stderr)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, handlers=handlers, force=True
    )
    for noisy in ("aiohttp", "watchdog", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
