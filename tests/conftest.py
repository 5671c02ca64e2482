from pathlib import Path

import pytest

from config import Settings
from helpers import LEDGER_A, LEDGER_B
from session_store import SessionStore
from web_app import create_app


@pytest.fixture
def write_csv(tmp_path: Path):
    def _write(name: str, text: str) -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def ledger_paths(write_csv):
    return write_csv("a.csv", LEDGER_A), write_csv("b.csv", LEDGER_B)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(upload_dir=str(tmp_path / "uploads"), session_ttl_seconds=0, log_level="WARNING")


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(ttl_seconds=0)


@pytest.fixture
def client(settings, store):
    app = create_app(settings, store=store)
    app.config["TESTING"] = True
    return app.test_client()
