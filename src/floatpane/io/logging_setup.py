"""Logging for the floatpane runtime.

Every record goes to a per-session rotating log file (the file the `logs`
panel tails). Warnings also go to stderr, but only while the terminal is not
owned by the Textual app: tui_owns_terminal() detaches the stderr handler for
the lifetime of the UI.

// [LAW:single-enforcer] Handlers on the `floatpane` logger are attached here only.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator

_ROOT_LOGGER = "floatpane"
_MAX_BYTES = 20 * 1024 * 1024
_BACKUPS = 5


@dataclass(frozen=True)
class LoggingRuntime:
    level_name: str
    level: int
    file_path: str


_RUNTIME: LoggingRuntime | None = None
_STDERR: logging.Handler | None = None


def _level_from_env() -> tuple[str, int]:
    name = os.environ.get("FLOATPANE_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO
    return logging.getLevelName(level), level


def _session_log_path(session_name: str) -> Path:
    log_dir = Path(
        os.environ.get("FLOATPANE_LOG_DIR") or os.path.expanduser("~/.local/share/floatpane/logs")
    )
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", session_name).strip("-_") or "session"
    return log_dir / "{}-{}.log".format(slug, os.getpid())


def configure(session_name: str = "floatpane") -> LoggingRuntime:
    """Attach the file and stderr handlers to the `floatpane` logger.

    Idempotent: later calls return the runtime from the first one.
    """
    global _RUNTIME, _STDERR
    if _RUNTIME is not None:
        return _RUNTIME

    level_name, level = _level_from_env()
    file_path = Path(os.environ.get("FLOATPANE_LOG_FILE") or _session_log_path(session_name))
    file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        file_path, maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8"
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s", "%H:%M:%S")
    )

    _STDERR = logging.StreamHandler()
    _STDERR.setLevel(logging.WARNING)
    _STDERR.setFormatter(logging.Formatter("floatpane: %(levelname)s %(message)s"))

    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(file_handler)
    logger.addHandler(_STDERR)

    _RUNTIME = LoggingRuntime(level_name=level_name, level=level, file_path=str(file_path))
    return _RUNTIME


@contextlib.contextmanager
def tui_owns_terminal() -> Iterator[None]:
    """Keep log output off the terminal while a full-screen app draws on it."""
    logger = logging.getLogger(_ROOT_LOGGER)
    handler = _STDERR
    if handler is None or handler not in logger.handlers:
        yield
        return
    logger.removeHandler(handler)
    try:
        yield
    finally:
        if _STDERR is handler:
            logger.addHandler(handler)


def get_runtime() -> LoggingRuntime | None:
    return _RUNTIME


def reset() -> None:
    """Detach and close configured handlers so configure() can run again."""
    global _RUNTIME, _STDERR
    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    _RUNTIME = None
    _STDERR = None
