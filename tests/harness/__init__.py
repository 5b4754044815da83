"""Test harness for floatpane.

Re-exports the public API for convenient imports:
    from tests.harness import run_app, press_and_settle, FakeHost, ...
"""

from tests.harness.app_runner import run_app
from tests.harness.assertions import is_panel_visible, panel_window, panel_windows
from tests.harness.fake_host import (
    CountingFactory,
    FakeHost,
    FakeWindow,
    GatedAsyncFactory,
)
from tests.harness.interactions import press_and_settle, resize_and_settle, settle_until

__all__ = [
    "run_app",
    "press_and_settle",
    "resize_and_settle",
    "settle_until",
    "is_panel_visible",
    "panel_window",
    "panel_windows",
    "FakeHost",
    "FakeWindow",
    "CountingFactory",
    "GatedAsyncFactory",
]
