"""Shared fixtures for tests."""

from __future__ import annotations

import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Set up test database before importing storage
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.environ["TARGETS_DB"] = _test_db_path


@pytest.fixture(scope="session", autouse=True)
def setup_test_db() -> Generator[Path, None, None]:
    """Set up a test database for the entire test session."""
    import storage

    # Reinitialise storage module with test db path
    storage.DB_PATH = Path(_test_db_path)
    storage.init_db()

    yield Path(_test_db_path)

    # Cleanup
    os.close(_test_db_fd)
    os.unlink(_test_db_path)


@pytest.fixture
def db_connection(setup_test_db: Path) -> Generator[sqlite3.Connection, None, None]:
    """Provide a database connection for tests."""
    import storage

    conn = storage.get_connection()
    yield conn
    conn.close()


@pytest.fixture
def clean_db(setup_test_db: Path) -> Generator[None, None, None]:
    """Clean database tables before each test."""
    import storage

    conn = storage.get_connection()
    conn.execute("DELETE FROM monthly_targets")
    conn.execute("DELETE FROM staff")
    conn.execute("DELETE FROM services")
    conn.execute("DELETE FROM config")
    conn.commit()
    conn.close()

    yield


@pytest.fixture
def fy_2024():
    """Financial year April 2024 - March 2025."""
    from models import FinancialYear

    return FinancialYear(start=2024, end=2025)


@pytest.fixture
def sample_staff():
    from models import StaffMember

    return [
        StaffMember(staff_id=1, name="Alice Brown"),
        StaffMember(staff_id=2, name="Ben Carter"),
    ]


@pytest.fixture
def sample_services():
    from models import Service

    return [
        Service(service_id=10, service_name="A"),
        Service(service_id=20, service_name="B"),
    ]


@pytest.fixture
def sample_context(fy_2024, sample_staff, sample_services):
    from models import EditorContext

    return EditorContext(financial_year=fy_2024, staff=sample_staff, services=sample_services)


@pytest.fixture
def empty_grid(sample_context):
    """A loaded grid with every cell at zero."""
    from grid import TargetGrid

    grid = TargetGrid(sample_context)
    grid.load([])
    return grid


class FakeStore:
    """In-memory stand-in for the storage module's target functions."""

    def __init__(self, rows=None, fail_insert_for=()):
        self.rows = list(rows or [])
        self.fail_insert_for = set(fail_insert_for)
        self.deletes: list[tuple[int, list[int]]] = []

    def get_targets(self, staff_id, years):
        years = list(years)
        return [
            r for r in self.rows
            if r.year in years and (staff_id is None or r.staff_id == staff_id)
        ]

    def delete_targets(self, staff_id, years):
        years = list(years)
        self.deletes.append((staff_id, years))
        before = len(self.rows)
        self.rows = [r for r in self.rows if not (r.staff_id == staff_id and r.year in years)]
        return before - len(self.rows)

    def insert_targets(self, records):
        if records and records[0].staff_id in self.fail_insert_for:
            raise sqlite3.OperationalError("database is locked")
        self.rows.extend(records)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_store_factory():
    return FakeStore
