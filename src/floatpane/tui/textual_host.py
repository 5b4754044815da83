"""Textual implementation of the panel manager's HostSurface.

Windows are FloatingPanel widgets mounted on the current screen's overlay
layer; the host surface is the screen itself.

// [LAW:locality-or-seam] All Textual window calls for panels are made here.
"""

from __future__ import annotations

import logging
from typing import Callable

from textual.app import App

from floatpane.app.content import TextBuffer
from floatpane.core.geometry import Geometry, PanelSpec
from floatpane.core.protocols import Content, Severity
from floatpane.tui.panel_window import FloatingPanel

logger = logging.getLogger(__name__)

CursorSource = Callable[[], "tuple[int, int] | None"]


class TextualHost:
    """HostSurface backed by a running Textual App."""

    def __init__(self, app: App, cursor_source: CursorSource | None = None):
        self._app = app
        self._cursor_source = cursor_source

    def create_window(self, content: Content, geometry: Geometry, spec: PanelSpec) -> FloatingPanel:
        buffer = content.handle
        if not isinstance(buffer, TextBuffer):
            raise TypeError("Textual panels render TextBuffer content, got {!r}".format(buffer))
        window = FloatingPanel(buffer, spec, geometry)
        self._app.screen.mount(window)
        return window

    def hide_window(self, window: FloatingPanel) -> None:
        window.closing = True
        window.remove()

    def is_valid(self, window) -> bool:
        return (
            isinstance(window, FloatingPanel)
            and not window.closing
            and window.is_attached
        )

    def move_window(self, window: FloatingPanel, geometry: Geometry) -> None:
        window.place(geometry)

    def query_dimensions(self) -> tuple[int, int]:
        size = self._app.screen.size
        return (size.width, size.height)

    def cursor_position(self) -> tuple[int, int] | None:
        if self._cursor_source is None:
            return None
        return self._cursor_source()

    def notify(self, message: str, severity: Severity = "information") -> None:
        self._app.notify(message, severity=severity)
