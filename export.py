"""CSV export of the target grid."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from grid import TargetGrid
from models import FinancialYear, Service, StaffMember
from utils import FY_MONTHS, month_to_year

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["staff_id", "staff_name", "service_id", "service_name", "month", "year", "target_value"]


def export_rows(grid: TargetGrid) -> list[dict]:
    """One row per (staff, month, service), year derived from the month."""
    fy = grid.financial_year
    rows = []
    for staff in grid.staff:
        for month, _ in FY_MONTHS:
            year = month_to_year(month, fy)
            for service in grid.services:
                rows.append({
                    "staff_id": staff.staff_id,
                    "staff_name": staff.name,
                    "service_id": service.service_id,
                    "service_name": service.service_name,
                    "month": month,
                    "year": year,
                    "target_value": grid.value(staff.staff_id, month, service.service_name),
                })
    return rows


def template_rows(fy: FinancialYear, staff: list[StaffMember], services: list[Service]) -> list[dict]:
    """Blank import template: every cell present with a zero target."""
    rows = []
    for member in staff:
        for service in services:
            for month, _ in FY_MONTHS:
                rows.append({
                    "staff_id": member.staff_id,
                    "staff_name": member.name,
                    "service_id": service.service_id,
                    "service_name": service.service_name,
                    "month": month,
                    "year": month_to_year(month, fy),
                    "target_value": 0,
                })
    return rows


def export_filename(fy: FinancialYear, prefix: str = "targets") -> str:
    # Label "2024/25" cannot be used verbatim in a filename
    return f"{prefix}_{fy.label.replace('/', '-')}.csv"


def write_csv(rows: list[dict], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Wrote %d rows to %s", len(rows), path)
    return path


def export_csv(grid: TargetGrid, directory: Path) -> Path:
    return write_csv(export_rows(grid), directory / export_filename(grid.financial_year))


def export_template(fy: FinancialYear, staff: list[StaffMember], services: list[Service], directory: Path) -> Path:
    rows = template_rows(fy, staff, services)
    return write_csv(rows, directory / export_filename(fy, prefix="targets_template"))
