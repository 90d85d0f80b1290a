#!/usr/bin/env python3
"""Import monthly targets from a CSV file into the database."""

from __future__ import annotations

import csv
import io
import logging
import sys
from pathlib import Path
from typing import Any

import storage
from models import Service, StaffMember, TargetRecord

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["staff_id", "service_id", "month", "year", "target_value"]


class CsvImportError(ValueError):
    """Raised when an import file cannot be applied."""


def parse_targets_csv(
    text: str,
    staff: list[StaffMember],
    services: list[Service],
) -> list[TargetRecord]:
    """Parse and validate CSV text. All rows must be valid or nothing is returned."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = [h.strip() for h in reader.fieldnames or []]
    reader.fieldnames = headers

    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise CsvImportError(f"Missing required columns: {', '.join(missing)}")

    staff_ids = {s.staff_id for s in staff}
    service_ids = {s.service_id for s in services}

    records = []
    # Row 1 is the header
    for row_num, row in enumerate(reader, start=2):
        if not any(isinstance(value, str) and value.strip() for value in row.values()):
            continue

        try:
            values = {col: int((row[col] or "").strip()) for col in REQUIRED_COLUMNS}
        except ValueError:
            raise CsvImportError(f"Invalid data in row {row_num}: non-numeric values found") from None

        if values["staff_id"] not in staff_ids:
            raise CsvImportError(f"Invalid staff_id {values['staff_id']} in row {row_num}")
        if values["service_id"] not in service_ids:
            raise CsvImportError(f"Invalid service_id {values['service_id']} in row {row_num}")
        if not 1 <= values["month"] <= 12:
            raise CsvImportError(f"Invalid month {values['month']} in row {row_num}")
        if values["target_value"] < 0:
            raise CsvImportError(f"Negative target_value in row {row_num}")

        records.append(TargetRecord(**values))

    return records


def import_targets(
    path: Path,
    staff: list[StaffMember],
    services: list[Service],
    store: Any = storage,
) -> int:
    """Upsert targets from a CSV file. Returns the number of rows imported."""
    text = path.read_text(encoding="utf-8")
    records = parse_targets_csv(text, staff, services)
    store.upsert_targets(records)
    logger.info("Imported %d target rows from %s", len(records), path)
    return len(records)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: import_data.py <targets.csv>")
        return 2

    storage.init_db()
    try:
        count = import_targets(Path(args[0]), storage.get_all_staff(), storage.get_all_services())
    except (CsvImportError, OSError) as e:
        print(f"Import failed: {e}")
        return 1

    print(f"Imported {count} target rows")
    return 0


if __name__ == "__main__":
    sys.exit(main())
