from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.upper().startswith("INSTALLPY_"):
            monkeypatch.delenv(name)
    # keep a stray .env in the working tree out of the settings
    monkeypatch.chdir(tmp_path)
