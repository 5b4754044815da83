"""Content providers for floating panels.

A panel's content handle is a TextBuffer. Windows render a buffer and can be
thrown away on hide; the buffer (and any process feeding it) lives until the
panel is destroyed or the process exits.

// [LAW:locality-or-seam] Subprocess lifecycle lives here; the manager only
//   sees Content(handle, exit_signal, teardown).
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable

from floatpane.core.exit_signal import ExitSignal
from floatpane.core.protocols import Content

logger = logging.getLogger(__name__)

LineListener = Callable[[str], None]

EXIT_LINE_FORMAT = "[exited with status {}]"

# Strong references to running output pumps (asyncio only keeps weak ones).
_PUMPS: set[asyncio.Task] = set()


class TextBuffer:
    """Append-only lines of text with change listeners."""

    def __init__(
        self,
        name: str = "",
        lines: list[str] | None = None,
        markup: str = "text",
        max_lines: int = 5000,
    ):
        self.name = name
        self.markup = markup  # "text" | "markdown"
        self.max_lines = max_lines
        self._lines: list[str] = list(lines or [])
        self._listeners: list[LineListener] = []

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def append(self, line: str) -> None:
        self._lines.append(line)
        overflow = len(self._lines) - self.max_lines
        if overflow > 0:
            del self._lines[:overflow]
        for listener in list(self._listeners):
            listener(line)

    def add_listener(self, listener: LineListener) -> Callable[[], None]:
        """Register listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def __repr__(self) -> str:
        return "TextBuffer(name={!r}, lines={})".format(self.name, len(self._lines))


# ─── Documents ────────────────────────────────────────────────────────────────


def document_factory(
    text: str | None = None,
    path: str | None = None,
    title: str = "",
) -> Callable[[], Content]:
    """Factory for a static document. Reads the file at creation time."""

    def _create() -> Content:
        body = text
        if body is None:
            if not path:
                raise ValueError("document needs text or a path")
            body = Path(path).expanduser().read_text(encoding="utf-8")
        markup = "markdown" if (path or "").endswith(".md") or text is not None else "text"
        buffer = TextBuffer(title or (path or "document"), body.splitlines(), markup=markup)
        return Content(handle=buffer)

    return _create


# ─── Commands ─────────────────────────────────────────────────────────────────

# Output is read in chunks and split here; StreamReader.readline() gives up on
# lines longer than its buffer limit.
_READ_CHUNK = 64 * 1024


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


async def _copy_lines(stream: asyncio.StreamReader, buffer: TextBuffer) -> None:
    partial = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        partial += chunk
        *complete, rest = bytes(partial).split(b"\n")
        partial = bytearray(rest)
        for raw in complete:
            buffer.append(_decode(raw))
    if partial:
        buffer.append(_decode(bytes(partial)))


async def _pump_output(
    proc: asyncio.subprocess.Process,
    buffer: TextBuffer,
    exit_signal: ExitSignal,
) -> None:
    """Copy process output into buffer, then announce the exit.

    The exit line and signal are emitted on every path out of the pump,
    including a read failure and cancellation by teardown.
    """
    assert proc.stdout is not None
    status = None
    try:
        await _copy_lines(proc.stdout, buffer)
        status = await proc.wait()
    finally:
        if status is None:
            status = proc.returncode
        buffer.append(EXIT_LINE_FORMAT.format("unknown" if status is None else status))
        logger.info("command %r exited with status %s", buffer.name, status)
        exit_signal.fire(status)


def _pump_done(pump: asyncio.Task) -> None:
    _PUMPS.discard(pump)
    if pump.cancelled():
        return
    error = pump.exception()
    if error is not None:
        logger.error("output pump failed: %r", error, exc_info=error)


def command_factory(
    argv: tuple[str, ...] | list[str],
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    title: str = "",
) -> Callable[[], Awaitable[Content]]:
    """Factory spawning argv with its output streamed into a TextBuffer.

    The returned coroutine completes as soon as the process exists; output
    and the exit notification arrive later on the event loop.
    """
    argv = tuple(argv)
    if not argv:
        raise ValueError("command must not be empty")

    async def _create() -> Content:
        proc_env = dict(os.environ)
        proc_env.update(env or {})
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            env=proc_env,
        )
        logger.info("spawned %r pid=%s", argv, proc.pid)

        buffer = TextBuffer(title or os.path.basename(argv[0]))
        exit_signal = ExitSignal()
        pump = asyncio.ensure_future(_pump_output(proc, buffer, exit_signal))
        _PUMPS.add(pump)
        pump.add_done_callback(_pump_done)

        def _teardown() -> None:
            if proc.returncode is None:
                try:
                    proc.terminate()
                    logger.info("terminated pid=%s", proc.pid)
                except ProcessLookupError:
                    pass
            pump.cancel()

        return Content(handle=buffer, exit_signal=exit_signal, teardown=_teardown)

    return _create
