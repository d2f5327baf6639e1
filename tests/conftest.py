"""Pytest configuration shared by every suite.

What:
  Put ``mailview/src`` on ``sys.path`` and apply a canned runtime
  configuration to each test.

Why:
  Tests must import the source tree rather than an installed wheel, and the
  runtime configuration is cached globally; without a reset one test's config
  would leak into the next.

How:
  Prepend the source directory at import time, then point
  ``MAILVIEW_CONFIG_PATH`` at ``tests/data/config.yaml`` and clear the cache
  around every test.

Interfaces:
  :func:`runtime_config` (autouse fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailview" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailview.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test."""

    monkeypatch.setenv("MAILVIEW_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
