"""Committed target grid plus the per-cell edit buffer."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from models import CellKey, EditorContext, FinancialYear, Service, StaffMember, TargetRecord
from utils import FY_MONTHS, is_target_in_financial_year

logger = logging.getLogger(__name__)


def parse_target(raw: str) -> int | None:
    """Parse cell text as a target. Blank means 0; returns None if invalid."""
    text = raw.strip()
    if not text:
        return 0
    try:
        value = int(text, 10)
    except ValueError:
        return None
    if value < 0:
        return None
    return value


class TargetGrid:
    """Targets for one financial year: staff -> month -> service name -> value.

    Cells being typed live in ``buffer`` until they are committed. The grid
    is the only owner of its values; callers read through ``read_cell`` and
    the aggregate helpers.
    """

    def __init__(self, context: EditorContext):
        self.context = context
        self.targets: dict[int, dict[int, dict[str, int]]] = {}
        self.buffer: dict[CellKey, str] = {}
        self.dirty = False
        self.loaded = False
        # Bumped on every value-changing commit
        self.revision = 0

    @property
    def financial_year(self) -> FinancialYear:
        return self.context.financial_year

    @property
    def staff(self) -> list[StaffMember]:
        return self.context.staff

    @property
    def services(self) -> list[Service]:
        return self.context.services

    def _empty_months(self) -> dict[int, dict[str, int]]:
        return {
            month: {service.service_name: 0 for service in self.services}
            for month, _ in FY_MONTHS
        }

    def load(self, records: Iterable[TargetRecord]) -> int:
        """Replace the grid with the given records. Returns count of rejected rows."""
        fy = self.financial_year
        self.targets = {staff.staff_id: self._empty_months() for staff in self.staff}
        rejected = 0

        for record in records:
            if not is_target_in_financial_year(record.month, record.year, fy):
                logger.warning(
                    "Skipping target for staff %s: month=%s, year=%s not in FY %s",
                    record.staff_id, record.month, record.year, fy.label,
                )
                rejected += 1
                continue

            months = self.targets.get(record.staff_id)
            service = self.context.service_by_id(record.service_id)
            if months is None or service is None:
                logger.debug("Ignoring target for unknown staff/service: %s", record)
                continue
            months[record.month][service.service_name] = record.target_value or 0

        self.buffer.clear()
        self.dirty = False
        self.loaded = True
        return rejected

    def value(self, staff_id: int, month: int, service_name: str) -> int:
        return self.targets[staff_id][month][service_name]

    def read_cell(self, staff_id: int, month: int, service_name: str) -> str:
        """Text to display for a cell: pending buffer text wins over the committed value."""
        key = CellKey(staff_id, month, service_name)
        if key in self.buffer:
            return self.buffer[key]
        return str(self.value(staff_id, month, service_name))

    def stage_edit(self, staff_id: int, month: int, service_name: str, raw: str) -> None:
        self.buffer[CellKey(staff_id, month, service_name)] = raw

    def commit_edit(self, staff_id: int, month: int, service_name: str, raw: str) -> bool:
        """Move a cell's text into the grid. Returns False if the text was rejected."""
        key = CellKey(staff_id, month, service_name)
        self.buffer.pop(key, None)

        parsed = parse_target(raw)
        if parsed is None:
            logger.debug("Rejected input %r for %s", raw, key)
            return False

        cells = self.targets[staff_id][month]
        if cells[service_name] != parsed:
            cells[service_name] = parsed
            self.dirty = True
            self.revision += 1
        return True

    def mark_clean(self, revision: int | None = None) -> None:
        """Clear the dirty flag, unless the grid changed since ``revision``."""
        if revision is None or revision == self.revision:
            self.dirty = False

    # --- Aggregates ---

    def monthly_total(self, staff_id: int, month: int) -> int:
        return sum(self.targets[staff_id][month].values())

    def annual_total(self, staff_id: int, service_name: str) -> int:
        return sum(months[service_name] for months in self.targets[staff_id].values())

    def staff_total(self, staff_id: int) -> int:
        return sum(self.monthly_total(staff_id, month) for month, _ in FY_MONTHS)

    def service_monthly_total(self, month: int, service_name: str) -> int:
        return sum(months[month][service_name] for months in self.targets.values())

    def service_annual_total(self, service_name: str) -> int:
        return sum(self.service_monthly_total(month, service_name) for month, _ in FY_MONTHS)

    def month_grand_total(self, month: int) -> int:
        return sum(self.service_monthly_total(month, s.service_name) for s in self.services)

    def grand_total(self) -> int:
        return sum(self.staff_total(staff_id) for staff_id in self.targets)
