"""Tab-order movement across the (staff, service, month) cell space."""

from __future__ import annotations

from typing import NamedTuple

from models import CellKey
from grid import TargetGrid
from utils import FY_MONTHS


class CellAddress(NamedTuple):
    staff: int
    service: int
    month: int


class GridShape(NamedTuple):
    staff: int
    services: int
    months: int = len(FY_MONTHS)


def step(address: CellAddress, shape: GridShape, forward: bool = True) -> CellAddress:
    """Next cell in Tab order, wrapping at every axis.

    Month moves fastest, then service, then staff, like an odometer.
    """
    staff, service, month = address

    if forward:
        month += 1
        if month >= shape.months:
            month = 0
            service += 1
            if service >= shape.services:
                service = 0
                staff += 1
                if staff >= shape.staff:
                    staff = 0
    else:
        month -= 1
        if month < 0:
            month = shape.months - 1
            service -= 1
            if service < 0:
                service = shape.services - 1
                staff -= 1
                if staff < 0:
                    staff = shape.staff - 1

    return CellAddress(staff, service, month)


def shape_of(grid: TargetGrid) -> GridShape:
    return GridShape(staff=len(grid.staff), services=len(grid.services))


def address_of(grid: TargetGrid, key: CellKey) -> CellAddress:
    staff_idx = next(i for i, s in enumerate(grid.staff) if s.staff_id == key.staff_id)
    service_idx = next(i for i, s in enumerate(grid.services) if s.service_name == key.service_name)
    month_idx = next(i for i, (m, _) in enumerate(FY_MONTHS) if m == key.month)
    return CellAddress(staff_idx, service_idx, month_idx)


def key_at(grid: TargetGrid, address: CellAddress) -> CellKey:
    return CellKey(
        grid.staff[address.staff].staff_id,
        FY_MONTHS[address.month][0],
        grid.services[address.service].service_name,
    )


def next_cell(grid: TargetGrid, key: CellKey, forward: bool = True) -> CellKey:
    """Key of the cell Tab (or Shift+Tab) lands on from ``key``."""
    return key_at(grid, step(address_of(grid, key), shape_of(grid), forward))


def advance(grid: TargetGrid, key: CellKey, raw: str, forward: bool = True) -> CellKey:
    """Commit the cell being left, then return the key to focus next."""
    grid.commit_edit(key.staff_id, key.month, key.service_name, raw)
    return next_cell(grid, key, forward)
