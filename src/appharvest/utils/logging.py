"""Centralized logging configuration for appharvest.

Usage in any module:
    from appharvest.utils.logging import get_logger
    logger = get_logger(__name__)
    logger.info("Crawled %d pages", n)

The level defaults to INFO and can be raised or lowered with the
``APPHARVEST_LOG_LEVEL`` environment variable or the CLI ``-v`` flag.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

_CONFIGURED = False

ROOT_LOGGER = "appharvest"
LOG_DIR = Path(__file__).resolve().parents[3] / "logs"
LOG_FILE = LOG_DIR / "appharvest.log"
LOG_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that survives consoles unable to encode app names."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            encoding = getattr(stream, "encoding", None) or "utf-8"
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode(encoding, errors="backslashreplace").decode(
                    encoding, errors="backslashreplace"
                )
                stream.write(safe_msg + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.environ.get("APPHARVEST_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Union[int, str, None] = None,
    log_file: Optional[Path] = None,
) -> None:
    """Configure the ``appharvest`` logger (console + file).

    Only the first call attaches handlers; later calls just adjust the level.
    """
    global _CONFIGURED
    root = logging.getLogger(ROOT_LOGGER)
    resolved = _resolve_level(level)

    if _CONFIGURED:
        if level is not None:
            root.setLevel(resolved)
            for handler in root.handlers:
                if isinstance(handler, SafeStreamHandler):
                    handler.setLevel(resolved)
        return
    _CONFIGURED = True

    root.setLevel(resolved)
    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = SafeStreamHandler(sys.stdout)
    console.setLevel(resolved)
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler is best-effort: read-only checkouts just skip it.
    target = log_file or LOG_FILE
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(target, encoding="utf-8", delay=True)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        root.addHandler(fh)
    except OSError:
        pass


def get_logger(name: str) -> logging.Logger:
    """Return a logger, configuring the ``appharvest`` tree on first use."""
    setup_logging()
    return logging.getLogger(name)
