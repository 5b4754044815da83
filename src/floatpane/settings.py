"""Settings file I/O for floatpane.

Reads the JSON settings file at XDG_CONFIG_HOME/floatpane/settings.json.
The file is user-edited; floatpane never writes it. Top-level keys are
`panels` plus the `default_*` fallbacks used by the panel catalog.
"""

import json
import os
from pathlib import Path
from typing import Optional


def get_config_path(override: Optional[str] = None) -> Path:
    """Return path to settings file.

    Uses XDG_CONFIG_HOME (default ~/.config) / floatpane / settings.json
    unless an explicit path is given.
    """
    if override:
        return Path(override).expanduser()
    config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(config_home) / "floatpane" / "settings.json"


def load_settings(path: Optional[str] = None) -> dict:
    """Load settings from JSON file. Returns empty dict on missing/corrupt file."""
    config_path = get_config_path(path)
    # [LAW:dataflow-not-control-flow] Always attempt read; empty dict is the "no data" value.
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def load_panel_definitions(path: Optional[str] = None) -> Optional[list]:
    """Raw panel definition list, or None when the user configured none."""
    panels = load_settings(path).get("panels")
    return panels if isinstance(panels, list) else None
