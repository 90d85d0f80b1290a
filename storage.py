from __future__ import annotations

import os
import sqlite3
from collections.abc import Iterable
from pathlib import Path

from models import Config, Service, StaffMember, TargetRecord


def _get_db_path() -> Path:
    """Get database path from environment variable or default location."""
    if env_path := os.environ.get("TARGETS_DB"):
        return Path(env_path)
    return Path(__file__).parent / "data" / "targets.db"


DB_PATH = _get_db_path()


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they don't exist."""
    conn = get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS staff (
            staff_id INTEGER PRIMARY KEY,
            name TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS services (
            service_id INTEGER PRIMARY KEY,
            service_name TEXT NOT NULL UNIQUE
        );

        CREATE TABLE IF NOT EXISTS monthly_targets (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            staff_id INTEGER NOT NULL,
            service_id INTEGER NOT NULL,
            month INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
            year INTEGER NOT NULL,
            target_value INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (staff_id) REFERENCES staff(staff_id),
            FOREIGN KEY (service_id) REFERENCES services(service_id),
            UNIQUE(staff_id, service_id, month, year)
        );

        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_targets_staff_year ON monthly_targets(staff_id, year);
    """)
    conn.commit()
    conn.close()


# --- Directories ---


def save_staff(staff: StaffMember) -> None:
    """Insert or update a staff member."""
    conn = get_connection()
    conn.execute(
        "INSERT OR REPLACE INTO staff (staff_id, name) VALUES (?, ?)",
        (staff.staff_id, staff.name),
    )
    conn.commit()
    conn.close()


def get_all_staff() -> list[StaffMember]:
    conn = get_connection()
    rows = conn.execute("SELECT * FROM staff ORDER BY name, staff_id").fetchall()
    conn.close()
    return [StaffMember(staff_id=row["staff_id"], name=row["name"]) for row in rows]


def save_service(service: Service) -> None:
    """Insert or update a service."""
    conn = get_connection()
    conn.execute(
        "INSERT OR REPLACE INTO services (service_id, service_name) VALUES (?, ?)",
        (service.service_id, service.service_name),
    )
    conn.commit()
    conn.close()


def get_all_services() -> list[Service]:
    conn = get_connection()
    rows = conn.execute("SELECT * FROM services ORDER BY service_id").fetchall()
    conn.close()
    return [Service(service_id=row["service_id"], service_name=row["service_name"]) for row in rows]


# --- Monthly targets ---


def _row_to_target(row: sqlite3.Row) -> TargetRecord:
    return TargetRecord(
        staff_id=row["staff_id"],
        service_id=row["service_id"],
        month=row["month"],
        year=row["year"],
        target_value=row["target_value"],
    )


def _placeholders(values: Iterable) -> str:
    return ", ".join("?" for _ in values)


def get_targets(staff_id: int | None, years: Iterable[int]) -> list[TargetRecord]:
    """Get target rows whose year is in ``years``, optionally for one staff member."""
    years = list(years)
    sql = f"SELECT * FROM monthly_targets WHERE year IN ({_placeholders(years)})"
    params: list[int] = list(years)
    if staff_id is not None:
        sql += " AND staff_id = ?"
        params.append(staff_id)
    sql += " ORDER BY staff_id, service_id, year, month"

    conn = get_connection()
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [_row_to_target(row) for row in rows]


def delete_targets(staff_id: int, years: Iterable[int]) -> int:
    """Delete all of a staff member's targets in the given years. Returns rows deleted."""
    years = list(years)
    conn = get_connection()
    cursor = conn.execute(
        f"DELETE FROM monthly_targets WHERE staff_id = ? AND year IN ({_placeholders(years)})",
        (staff_id, *years),
    )
    conn.commit()
    conn.close()
    return cursor.rowcount


def insert_targets(records: list[TargetRecord]) -> None:
    """Insert a batch of target rows in one transaction."""
    if not records:
        return
    conn = get_connection()
    try:
        with conn:
            conn.executemany(
                """
                INSERT INTO monthly_targets (staff_id, service_id, month, year, target_value)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(r.staff_id, r.service_id, r.month, r.year, r.target_value) for r in records],
            )
    finally:
        conn.close()


def upsert_targets(records: list[TargetRecord]) -> None:
    """Insert or replace target rows on (staff, service, month, year)."""
    if not records:
        return
    conn = get_connection()
    try:
        with conn:
            conn.executemany(
                """
                INSERT INTO monthly_targets (staff_id, service_id, month, year, target_value)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(staff_id, service_id, month, year)
                DO UPDATE SET target_value = excluded.target_value
                """,
                [(r.staff_id, r.service_id, r.month, r.year, r.target_value) for r in records],
            )
    finally:
        conn.close()


# --- Config ---


def get_config() -> Config:
    """Load config from database."""
    conn = get_connection()
    rows = conn.execute("SELECT key, value FROM config").fetchall()
    conn.close()

    config = Config()
    for row in rows:
        if row["key"] == "export_dir":
            config.export_dir = row["value"]
        elif row["key"] == "notice_seconds":
            config.notice_seconds = int(row["value"])

    return config


def save_config(config: Config):
    """Save config to database."""
    conn = get_connection()
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("export_dir", config.export_dir))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("notice_seconds", str(config.notice_seconds)))
    conn.commit()
    conn.close()
