"""FloatingPanel — the Textual window that renders one panel's TextBuffer.

The widget is disposable: hiding a panel removes it, and showing the panel
again mounts a new one over the same buffer.
"""

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import Markdown, RichLog

from floatpane.app.content import EXIT_LINE_FORMAT, TextBuffer
from floatpane.core.geometry import BorderStyle, Geometry, PanelSpec


# Textual border type per BorderStyle.
_BORDER_TYPES = {
    BorderStyle.NONE: None,
    BorderStyle.SINGLE: "solid",
    BorderStyle.ROUNDED: "round",
}


class FloatingPanel(Container):
    """Overlay window placed at an absolute cell offset on the screen."""

    DEFAULT_CSS = """
    FloatingPanel {
        layer: overlay;
        position: absolute;
        background: $surface;
        border-title-color: $accent;
        overflow-y: auto;
    }
    FloatingPanel.-border-solid {
        border: solid $accent;
    }
    FloatingPanel.-border-round {
        border: round $accent;
    }
    FloatingPanel > RichLog {
        background: $surface;
        scrollbar-size-vertical: 1;
    }
    FloatingPanel > Markdown {
        background: $surface;
        height: auto;
    }
    """

    def __init__(self, buffer: TextBuffer, spec: PanelSpec, geometry: Geometry):
        super().__init__(classes="floating-panel")
        self.buffer = buffer
        self.spec = spec
        self.closing = False
        self._remove_listener = None
        border_type = _BORDER_TYPES[spec.border]
        if border_type is not None:
            self.add_class("-border-{}".format(border_type))
            self.border_title = spec.title or buffer.name
        self.place(geometry)

    def place(self, geometry: Geometry) -> None:
        self.geometry = geometry
        self.styles.width = geometry.width
        self.styles.height = geometry.height
        self.styles.offset = (geometry.col, geometry.row)

    def compose(self) -> ComposeResult:
        if self.buffer.markup == "markdown":
            yield Markdown(self.buffer.text)
        else:
            yield RichLog(max_lines=self.buffer.max_lines, wrap=True, markup=False)

    def on_mount(self) -> None:
        if self.buffer.markup == "markdown":
            return
        log = self.query_one(RichLog)
        for line in self.buffer.lines:
            log.write(_styled(line))
        self._remove_listener = self.buffer.add_listener(lambda line: log.write(_styled(line)))

    def on_unmount(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def rendered_lines(self) -> list[str]:
        """Lines this window has been given to render (tests/debugging)."""
        if self.buffer.markup == "markdown":
            return self.buffer.lines
        return [strip.text for strip in self.query_one(RichLog).lines]


_EXIT_PREFIX = EXIT_LINE_FORMAT.split("{}")[0]


def _styled(line: str) -> Text:
    return Text(line, style="dim italic" if line.startswith(_EXIT_PREFIX) else "")
