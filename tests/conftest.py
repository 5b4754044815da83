"""Pytest configuration and shared fixtures for floatpane tests."""

import pytest

import floatpane.io.logging_setup


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point config and logs at a temp dir; never touch the real home."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("FLOATPANE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("FLOATPANE_LOG_FILE", raising=False)
    monkeypatch.delenv("FLOATPANE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("FLOATPANE_SHELL_COMMAND", raising=False)
    yield
    # configure() disables propagation; undo it so caplog keeps working.
    floatpane.io.logging_setup.reset()
