"""Load the target grid from the store and write it back.

The store is anything with ``get_targets``, ``delete_targets`` and
``insert_targets`` (the ``storage`` module in the app). Calls are blocking,
so each runs in a thread and per-staff work is gathered concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from grid import TargetGrid
from models import EditorContext, TargetRecord
from utils import FY_MONTHS, month_to_year

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    saved: list[int] = field(default_factory=list)
    failed: dict[int, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


async def load_records(store: Any, context: EditorContext) -> list[TargetRecord]:
    """Fetch every staff member's rows for both calendar years of the financial year."""
    fy = context.financial_year
    years = [fy.start, fy.end]
    per_staff = await asyncio.gather(*(
        asyncio.to_thread(store.get_targets, staff.staff_id, years)
        for staff in context.staff
    ))
    return [record for records in per_staff for record in records]


async def load_grid(store: Any, context: EditorContext) -> TargetGrid:
    """Build a fresh grid for the context's financial year.

    Store errors propagate; rows from the wrong year are dropped by the grid.
    """
    records = await load_records(store, context)
    grid = TargetGrid(context)
    rejected = grid.load(records)
    logger.info(
        "Loaded %d target rows for FY %s (%d rejected)",
        len(records) - rejected, context.financial_year.label, rejected,
    )
    return grid


def build_records(grid: TargetGrid, staff_id: int) -> list[TargetRecord]:
    """Full row set for one staff member, zeros included."""
    fy = grid.financial_year
    records = []
    for month, _ in FY_MONTHS:
        year = month_to_year(month, fy)
        for service in grid.services:
            records.append(TargetRecord(
                staff_id=staff_id,
                service_id=service.service_id,
                month=month,
                year=year,
                target_value=grid.value(staff_id, month, service.service_name),
            ))
    return records


async def _save_staff(store: Any, staff_id: int, years: list[int], records: list[TargetRecord]) -> None:
    await asyncio.to_thread(store.delete_targets, staff_id, years)
    await asyncio.to_thread(store.insert_targets, records)


async def save_grid(store: Any, grid: TargetGrid) -> SaveResult:
    """Replace each staff member's stored targets for the year with the grid's.

    Staff are written independently: one failure does not undo the others.
    The grid is marked clean only when every staff member saved.
    """
    fy = grid.financial_year
    years = [fy.start, fy.end]
    revision = grid.revision
    # Snapshot rows before yielding so edits made during the save are not half-written
    batches = {staff.staff_id: build_records(grid, staff.staff_id) for staff in grid.staff}
    staff_ids = list(batches)
    outcomes = await asyncio.gather(
        *(_save_staff(store, staff_id, years, batches[staff_id]) for staff_id in staff_ids),
        return_exceptions=True,
    )

    result = SaveResult()
    for staff_id, outcome in zip(staff_ids, outcomes):
        if isinstance(outcome, Exception):
            logger.error("Failed to save targets for staff %s: %s", staff_id, outcome)
            result.failed[staff_id] = outcome
        else:
            result.saved.append(staff_id)

    if result.ok:
        grid.mark_clean(revision)
        logger.info("Saved targets for %d staff in FY %s", len(result.saved), grid.financial_year.label)
    return result
