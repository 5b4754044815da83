"""Contracts between the panel manager and its collaborators.

// [LAW:locality-or-seam] The manager talks only to these shapes. The Textual
// host and the test fake both satisfy HostSurface structurally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Protocol, Union

from floatpane.core.exit_signal import ExitSignal
from floatpane.core.geometry import Geometry, PanelSpec


Severity = Literal["information", "warning", "error"]
PanelKey = Union[str, int]


@dataclass(frozen=True)
class Content:
    """What a content factory yields.

    handle: opaque reference to whatever the panel displays.
    exit_signal: fired once when backing content terminates on its own.
    teardown: releases the content (kill a process, drop a buffer).
    """

    handle: Any
    exit_signal: ExitSignal | None = None
    teardown: Callable[[], None] | None = None


ContentFactory = Callable[[], Union[Content, Awaitable[Content]]]


class HostSurface(Protocol):
    def create_window(self, content: Content, geometry: Geometry, spec: PanelSpec) -> Any:
        ...

    def hide_window(self, window: Any) -> None:
        ...

    def is_valid(self, window: Any) -> bool:
        ...

    def move_window(self, window: Any, geometry: Geometry) -> None:
        ...

    def query_dimensions(self) -> tuple[int, int]:
        ...

    def cursor_position(self) -> tuple[int, int] | None:
        ...

    def notify(self, message: str, severity: Severity = "information") -> None:
        ...
