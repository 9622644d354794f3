"""Shared fixtures: a file-backed SQLite ledger per test.

A file database (rather than ``:memory:``) lets the pagers open several
pooled connections from worker threads and still see the same rows.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base
from app.db.session import Database
from app.main import create_app


@pytest.fixture
def database(tmp_path: Path):
    db = Database(f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}")
    db.open()
    Base.metadata.create_all(db.engine)
    yield db
    db.close()


@pytest.fixture
def broken_database(tmp_path: Path):
    """An open database with no schema, so every query fails."""
    db = Database(f"sqlite+pysqlite:///{tmp_path / 'empty.db'}")
    db.open()
    yield db
    db.close()


@pytest.fixture
def add_transactions(database: Database):
    def _add(transactions):
        transactions = list(transactions)
        with database.session() as session:
            session.add_all(transactions)
            session.commit()
        return transactions

    return _add


@pytest.fixture
def client(database: Database):
    with TestClient(create_app(database=database)) as test_client:
        yield test_client
