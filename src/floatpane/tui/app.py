"""Main TUI application: an editing area with toggleable floating panels.

// [LAW:locality-or-seam] Thin coordinator — panel lifecycle lives in
//   FloatingPanelManager, window calls in TextualHost, panel metadata in
//   the panel catalog.
"""

from __future__ import annotations

import logging
import traceback

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, TextArea

from floatpane.app import content as _content
from floatpane.app.panel_catalog import (
    KIND_COMMAND,
    PanelDefinition,
    render_help,
    resolve_bindings,
)
from floatpane.core.errors import FloatPaneError
from floatpane.core.manager import FloatingPanelManager
from floatpane.core.protocols import ContentFactory
from floatpane.core.registry import PanelRegistry
from floatpane.tui.textual_host import TextualHost

logger = logging.getLogger(__name__)

CLOSE_BINDING = "f8"


class FloatPaneApp(App):
    """Editor surface hosting named floating panels."""

    CSS = """
    Screen {
        layers: default overlay;
    }
    #editor {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding(CLOSE_BINDING, "close_panel", "Close panel", priority=True),
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    def __init__(
        self,
        catalog: list[PanelDefinition],
        editor_text: str = "",
        session_name: str = "floatpane",
    ):
        super().__init__()
        self._catalog = {definition.key: definition for definition in catalog}
        self._help_text = render_help(catalog, CLOSE_BINDING)
        self._editor_text = editor_text
        self.sub_title = session_name
        self._panel_host = TextualHost(self, cursor_source=self._editor_cursor)
        # [LAW:no-shared-mutable-globals] One registry per app instance.
        self.panels = FloatingPanelManager(self._panel_host, PanelRegistry())

    def compose(self) -> ComposeResult:
        yield TextArea(self._editor_text, id="editor")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#editor", TextArea).focus()

    def on_resize(self) -> None:
        self.call_after_refresh(self.panels.relayout)

    def on_unmount(self) -> None:
        self.panels.destroy_all()

    # ─── Panel actions ─────────────────────────────────────────────────

    def action_toggle_panel(self, key: str) -> None:
        definition = self._catalog.get(key)
        if definition is None:
            self.notify("Unknown panel {}".format(key), severity="warning")
            return
        try:
            state = self.panels.toggle(key, self._factory_for(definition), definition.spec)
        except FloatPaneError as e:
            # The manager already logged and notified; the panel just stays closed.
            logger.debug("toggle %r failed: %s", key, e)
            return
        logger.debug("toggle %r -> %s", key, state.value)

    def action_close_panel(self) -> None:
        key = self.panels.topmost()
        if key is None:
            return
        self.panels.destroy(key)

    # ─── Helpers ───────────────────────────────────────────────────────

    def _factory_for(self, definition: PanelDefinition) -> ContentFactory:
        if definition.kind == KIND_COMMAND:
            return _content.command_factory(definition.command, title=definition.spec.title or "")
        if definition.path or definition.text:
            return _content.document_factory(
                text=definition.text or None,
                path=definition.path or None,
                title=definition.spec.title or "",
            )
        return _content.document_factory(text=self._help_text, title=definition.spec.title or "")

    def _editor_cursor(self) -> tuple[int, int] | None:
        editor = self.query_one("#editor", TextArea)
        offset = editor.cursor_screen_offset
        return (offset.x, offset.y)

    def _handle_exception(self, error: Exception) -> None:
        """// [LAW:single-enforcer] Top-level exception handler - keeps the editor running."""
        tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        logger.error("unhandled exception: %s\n%s", error, tb)
        self.notify("{}: {}".format(type(error).__name__, error), severity="error")


def build_app(
    catalog: list[PanelDefinition],
    editor_text: str = "",
    session_name: str = "floatpane",
) -> FloatPaneApp:
    """Create the app with one priority binding per configured panel key."""
    bindings = [
        Binding(key, "toggle_panel({!r})".format(panel_key), panel_key, priority=True)
        for key, panel_key in resolve_bindings(catalog).items()
    ]
    app_class = type("FloatPaneApp", (FloatPaneApp,), {"BINDINGS": bindings})
    return app_class(catalog, editor_text=editor_text, session_name=session_name)
