"""Panel catalog — which named panels exist, what they show, how they are bound.

// [LAW:one-source-of-truth] All configurable panel metadata lives here.
// [LAW:locality-or-seam] Adding a panel = one definition here (or in settings.json).

Definitions come from settings.json ("panels") or the built-in defaults. Bad
entries are skipped with a warning; configuration problems are never fatal.
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field

from floatpane.core.geometry import Anchor, BorderStyle, PanelSpec

logger = logging.getLogger(__name__)

KIND_COMMAND = "command"
KIND_DOCUMENT = "document"
_KINDS = (KIND_COMMAND, KIND_DOCUMENT)

DEFAULT_COMMAND = "sh -c 'while :; do date; sleep 2; done'"


@dataclass(frozen=True)
class PanelDefinition:
    """One configured panel."""

    key: str
    kind: str
    binding: str = ""
    spec: PanelSpec = field(default_factory=PanelSpec)
    command: tuple[str, ...] = ()
    path: str = ""
    text: str = ""
    description: str = ""


def _shell_command() -> str:
    return os.environ.get("FLOATPANE_SHELL_COMMAND", "").strip() or DEFAULT_COMMAND


def default_definitions(log_file: str | None = None) -> list[dict]:
    """Built-in panel definitions, in the raw (settings.json) shape."""
    command = _shell_command()
    raw = [
        {"key": "help", "kind": KIND_DOCUMENT, "binding": "f1", "title": "Help",
         "description": "Keybindings"},
        {"key": "term1", "kind": KIND_COMMAND, "binding": "f2", "command": command,
         "title": "term1", "description": "Command panel 1"},
        {"key": "term2", "kind": KIND_COMMAND, "binding": "f3", "command": command,
         "title": "term2", "description": "Command panel 2"},
        {"key": "term3", "kind": KIND_COMMAND, "binding": "f4", "command": command,
         "title": "term3", "description": "Command panel 3"},
    ]
    if log_file:
        raw.append({
            "key": "logs", "kind": KIND_COMMAND, "binding": "f5",
            "command": "tail -f -- {}".format(shlex.quote(log_file)),
            "title": "floatpane log", "height": 0.5, "description": "Follow the runtime log",
        })
    return raw


def parse_definition(raw: dict, defaults: dict | None = None) -> PanelDefinition:
    """Build a PanelDefinition from one raw entry. Raises ValueError when invalid."""
    if not isinstance(raw, dict):
        raise ValueError("panel definition must be an object, got {!r}".format(raw))
    defaults = defaults or {}

    key = str(raw.get("key", "")).strip()
    if not key:
        raise ValueError("panel definition is missing 'key'")
    kind = raw.get("kind", KIND_COMMAND)
    if kind not in _KINDS:
        raise ValueError("panel {!r}: unknown kind {!r}".format(key, kind))

    spec = PanelSpec(
        width_fraction=raw.get("width", defaults.get("default_width", 0.8)),
        height_fraction=raw.get("height", defaults.get("default_height", 0.8)),
        border=BorderStyle(raw.get("border", defaults.get("default_border", "rounded"))),
        anchor=Anchor(raw.get("anchor", "editor")),
        title=raw.get("title") or key,
    )

    command: tuple[str, ...] = ()
    if kind == KIND_COMMAND:
        raw_command = raw.get("command", "")
        command = tuple(raw_command) if isinstance(raw_command, list) else tuple(shlex.split(str(raw_command)))
        if not command:
            raise ValueError("panel {!r}: command panels need a 'command'".format(key))

    return PanelDefinition(
        key=key,
        kind=kind,
        binding=str(raw.get("binding", "")).strip(),
        spec=spec,
        command=command,
        path=str(raw.get("path", "")),
        text=str(raw.get("text", "")),
        description=str(raw.get("description", "")),
    )


def build_catalog(
    raw_definitions: list | None,
    settings: dict | None = None,
    log_file: str | None = None,
) -> list[PanelDefinition]:
    """Parse raw definitions (or the defaults) into an ordered catalog.

    Later definitions for an already-seen key replace the earlier one.
    """
    raw_list = raw_definitions if raw_definitions is not None else default_definitions(log_file)
    catalog: dict[str, PanelDefinition] = {}
    for raw in raw_list:
        try:
            definition = parse_definition(raw, settings)
        except (ValueError, TypeError) as e:
            logger.warning("skipping panel definition: %s", e)
            continue
        if definition.key in catalog:
            logger.warning("panel %r defined twice; using the later definition", definition.key)
        catalog[definition.key] = definition
    return list(catalog.values())


def resolve_bindings(catalog: list[PanelDefinition]) -> dict[str, str]:
    """Map binding → panel key. Each binding is independent; the last claim wins."""
    bindings: dict[str, str] = {}
    for definition in catalog:
        if not definition.binding:
            continue
        previous = bindings.get(definition.binding)
        if previous is not None:
            logger.warning(
                "binding %r claimed by %r and %r; using %r",
                definition.binding, previous, definition.key, definition.key,
            )
        bindings[definition.binding] = definition.key
    return bindings


def render_help(catalog: list[PanelDefinition], close_binding: str) -> str:
    """Markdown help document listing the panel keybindings."""
    bindings = resolve_bindings(catalog)
    by_key = {d.key: d for d in catalog}
    lines = [
        "# floatpane",
        "",
        "Floating panels over the editor. Press a panel's key to toggle it.",
        "",
        "| Key | Panel | Description |",
        "| --- | --- | --- |",
    ]
    for binding, key in bindings.items():
        definition = by_key[key]
        lines.append("| `{}` | {} | {} |".format(binding, key, definition.description or definition.kind))
    lines.append("| `{}` | | Close the topmost panel |".format(close_binding))
    return "\n".join(lines) + "\n"
