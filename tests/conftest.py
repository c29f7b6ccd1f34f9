"""Pytest configuration for test isolation.

Settings are read from ``SHEET_LEDGER_*`` environment variables, and the CLI
loads a ``.env`` from the working directory. A developer's shell or local
``.env`` must not leak into tests, so every test starts with those variables
cleared and runs from its own temporary directory.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from sheet_ledger import normalizers


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("SHEET_LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_ambiguity_memo() -> None:
    # Ambiguous dates are reported once per process; tests need a clean slate.
    normalizers._ambiguous_seen.clear()
