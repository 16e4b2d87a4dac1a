"""Pytest configuration: import paths and per-test database isolation.

The workspace keeps the engine under ``packages/`` and the shared database
library under ``libs/db/src``; both (plus the repo root, for ``tests.helpers``)
are put on ``sys.path`` so tests run without an editable install.

Every test that needs a database gets its own file-backed SQLite DB under
``tmp_path``; engines are disposed afterwards so file handles don't leak
across tests.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT))
    if p not in sys.path
]

from db.client import dispose_engines, get_session  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ambient configuration from leaking into tests."""

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("RL_HORIZON_YEARS", raising=False)
    monkeypatch.delenv("RECURRING_LEDGER_LOG_LEVEL", raising=False)


@pytest.fixture
def db_url(tmp_path: Path) -> Iterator[str]:
    url = bootstrap_sqlite_db(tmp_path / "rl-test.db")
    yield url
    dispose_engines()


@pytest.fixture
def session(db_url: str) -> Iterator[Session]:
    s = get_session(database_url=db_url)
    try:
        yield s
    finally:
        s.rollback()
        s.close()
