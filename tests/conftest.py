# tests/conftest.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from assetflow.config import BuildConfig

from .fakes import RecordingNotifier


@pytest.fixture()
def config(tmp_path: Path) -> BuildConfig:
    """
    Config rooted in a per-test directory: sources in src/, outputs in out/,
    no minification so no external tools are needed by default.
    """
    (tmp_path / "src").mkdir()
    return BuildConfig(project_root=tmp_path, source_dir="src", dest_dir="out", minify=False)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
