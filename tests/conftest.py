"""Pytest configuration for test isolation.

The JSON storage backend defaults to ``./.finance_data`` and the CLI reads
``DATABASE_URL`` to pick the SQL backend. To keep tests hermetic, every test
gets its own data directory and a clean set of pipeline environment
variables.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_storage(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point ``FP_DATA_DIR`` at a per-test directory and drop ambient config."""

    data_root = tmp_path / "data"
    data_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("FP_DATA_DIR", os.fspath(data_root))
    for name in ("DATABASE_URL", "FP_PERIOD_START_DAY", "FINANCE_PIPELINE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
