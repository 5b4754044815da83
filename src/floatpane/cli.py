"""CLI entry point for floatpane."""

import argparse
import logging
import sys
from pathlib import Path

import floatpane.io.logging_setup
import floatpane.settings
from floatpane.app.panel_catalog import build_catalog, resolve_bindings
from floatpane.core.geometry import PanelSpec, compute_geometry
from floatpane.tui.app import build_app

logger = logging.getLogger(__name__)


def _parse_dimensions(raw: str) -> tuple[int, int]:
    """Parse COLSxROWS, e.g. 200x50."""
    try:
        cols, rows = raw.lower().split("x", 1)
        dims = (int(cols), int(rows))
    except ValueError:
        raise argparse.ArgumentTypeError("expected COLSxROWS, got {!r}".format(raw))
    if dims[0] < 1 or dims[1] < 1:
        raise argparse.ArgumentTypeError("dimensions must be positive, got {!r}".format(raw))
    return dims


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="floatpane",
        description="Text editor surface with toggleable floating panels",
    )
    parser.add_argument("file", nargs="?", default=None, help="File to load into the editor")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Settings file (default: $XDG_CONFIG_HOME/floatpane/settings.json)",
    )
    parser.add_argument(
        "--session",
        type=str,
        default="floatpane",
        help="Session name used for the log file name (default: floatpane)",
    )
    parser.add_argument(
        "--list-panels",
        action="store_true",
        default=False,
        help="Print the configured panels and exit.",
    )
    parser.add_argument(
        "--geometry",
        type=_parse_dimensions,
        default=None,
        metavar="COLSxROWS",
        help="Print the panel geometry for a host of this size and exit.",
    )
    parser.add_argument("--width", type=float, default=0.8, help="Width fraction for --geometry")
    parser.add_argument("--height", type=float, default=0.8, help="Height fraction for --geometry")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.geometry is not None:
        try:
            spec = PanelSpec(width_fraction=args.width, height_fraction=args.height)
        except ValueError as e:
            parser.error(str(e))
        g = compute_geometry(spec, args.geometry)
        print("width={} height={} col={} row={}".format(g.width, g.height, g.col, g.row))
        return 0

    # [LAW:single-enforcer] Runtime logger configuration is centralized in io.logging_setup.
    log_runtime = floatpane.io.logging_setup.configure(session_name=args.session)
    logger.info(
        "logging configured level=%s file=%s",
        log_runtime.level_name,
        log_runtime.file_path,
    )

    settings = floatpane.settings.load_settings(args.config)
    catalog = build_catalog(
        floatpane.settings.load_panel_definitions(args.config),
        settings,
        log_file=log_runtime.file_path,
    )

    if args.list_panels:
        bindings = {key: binding for binding, key in resolve_bindings(catalog).items()}
        for definition in catalog:
            target = " ".join(definition.command) if definition.command else (definition.path or "(help)")
            print("{:<10} {:<6} {:<9} {}".format(
                definition.key, bindings.get(definition.key, "-"), definition.kind, target
            ))
        return 0

    editor_text = ""
    if args.file:
        try:
            editor_text = Path(args.file).read_text(encoding="utf-8")
        except OSError as e:
            print("floatpane: cannot read {}: {}".format(args.file, e), file=sys.stderr)
            return 1

    app = build_app(catalog, editor_text=editor_text, session_name=args.session)
    with floatpane.io.logging_setup.tui_owns_terminal():
        app.run()
    logger.info("floatpane exited")
    return 0


if __name__ == "__main__":
    sys.exit(main())
