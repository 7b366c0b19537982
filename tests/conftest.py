"""Shared pytest fixtures used across the test suite."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Linux CI runners are often headless. Force an offscreen backend only there.
if (
    sys.platform.startswith("linux")
    and "QT_QPA_PLATFORM" not in os.environ
    and "DISPLAY" not in os.environ
    and "WAYLAND_DISPLAY" not in os.environ
):
    os.environ["QT_QPA_PLATFORM"] = "offscreen"

FAKE_ENGINE = Path(__file__).parent / "fakes" / "fake_uci_engine.py"


@pytest.fixture(scope="session")
def qapp() -> Iterator[object]:
    """Provide a singleton QCoreApplication for queued-signal tests."""
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def fake_engine_cmd() -> list[str]:
    """Command line that runs the scripted fake UCI engine."""
    return [sys.executable, str(FAKE_ENGINE)]


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "engine.yaml"
    path.write_text(
        "engine:\n"
        f"  path: '{sys.executable}'\n"
        f"  args: ['{FAKE_ENGINE}']\n"
        "  handshake_timeout_s: 5\n"
        "  options:\n"
        "    Hash: 16\n"
        "    Ponder: false\n"
        "    Clear Hash:\n"
        "game:\n"
        "  think_time_ms: 100\n"
        "  draw_halfmove_threshold: 40\n",
        encoding="utf-8",
    )
    return path
