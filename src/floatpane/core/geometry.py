"""Panel geometry — pure placement math for overlay panels.

// [LAW:dataflow-not-control-flow] Placement is a value computed from
// (spec, host dimensions, cursor); no host state is read here.

This module is STABLE and has no dependencies on other project modules.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class BorderStyle(Enum):
    NONE = "none"
    SINGLE = "single"
    ROUNDED = "rounded"


class Anchor(Enum):
    EDITOR = "editor"
    CURSOR = "cursor"


@dataclass(frozen=True)
class PanelSpec:
    """Requested overlay configuration. Fractions are relative to the host."""

    width_fraction: float = 0.8
    height_fraction: float = 0.8
    border: BorderStyle = BorderStyle.ROUNDED
    anchor: Anchor = Anchor.EDITOR
    title: str | None = None

    def __post_init__(self):
        for name in ("width_fraction", "height_fraction"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError("{} must be a number, got {!r}".format(name, value))
            if not (0 < value <= 1):
                raise ValueError("{} must be in (0, 1], got {!r}".format(name, value))
        # Accept plain strings from config ("rounded", "cursor").
        if not isinstance(self.border, BorderStyle):
            object.__setattr__(self, "border", BorderStyle(self.border))
        if not isinstance(self.anchor, Anchor):
            object.__setattr__(self, "anchor", Anchor(self.anchor))


@dataclass(frozen=True)
class Geometry:
    """Panel box in integer cell units, relative to the host's top-left."""

    width: int
    height: int
    col: int
    row: int


def _span(total: int, fraction: float) -> int:
    # Clamp to [1, total]: tiny hosts would otherwise floor to zero.
    return max(1, min(total, math.floor(total * fraction)))


def _fit(start: int, size: int, total: int) -> int:
    """Shift start so that [start, start + size) stays inside [0, total)."""
    return max(0, min(start, total - size))


def compute_geometry(
    spec: PanelSpec,
    dimensions: tuple[int, int],
    cursor: tuple[int, int] | None = None,
) -> Geometry:
    """Compute the panel box for a host of (columns, rows).

    Editor-anchored panels (and cursor-anchored ones when no cursor is known)
    are centered. Cursor-anchored panels open on the row below the cursor,
    flipping above it when there is no room, and are shifted to stay inside
    the host.
    """
    columns, rows = dimensions
    if columns < 1 or rows < 1:
        raise ValueError("host dimensions must be positive, got {}x{}".format(columns, rows))

    width = _span(columns, spec.width_fraction)
    height = _span(rows, spec.height_fraction)

    if spec.anchor is Anchor.CURSOR and cursor is not None:
        cursor_col, cursor_row = cursor
        below = cursor_row + 1
        row = below if below + height <= rows else cursor_row - height
        return Geometry(
            width=width,
            height=height,
            col=_fit(cursor_col, width, columns),
            row=_fit(row, height, rows),
        )

    return Geometry(
        width=width,
        height=height,
        col=(columns - width) // 2,
        row=(rows - height) // 2,
    )
