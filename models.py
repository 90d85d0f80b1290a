from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple


@dataclass(frozen=True)
class FinancialYear:
    """UK financial year running April (start) to March (end)."""

    start: int
    end: int
    label: str = ""

    def __post_init__(self):
        if self.end != self.start + 1:
            raise ValueError(f"Financial year must span consecutive years, got {self.start}-{self.end}")
        if not self.label:
            object.__setattr__(self, "label", f"{self.start}/{str(self.end)[-2:]}")

    @classmethod
    def starting(cls, year: int) -> FinancialYear:
        return cls(start=year, end=year + 1)


@dataclass(frozen=True)
class Service:
    service_id: int
    service_name: str


@dataclass(frozen=True)
class StaffMember:
    staff_id: int
    name: str


@dataclass
class TargetRecord:
    staff_id: int
    service_id: int
    month: int
    year: int
    target_value: int = 0


class CellKey(NamedTuple):
    """Composite key of one editable target cell."""

    staff_id: int
    month: int
    service_name: str


@dataclass
class EditorContext:
    """Everything the grid editor needs, supplied up front."""

    financial_year: FinancialYear
    staff: list[StaffMember] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)

    def service_by_id(self, service_id: int) -> Service | None:
        return next((s for s in self.services if s.service_id == service_id), None)

    def service_by_name(self, name: str) -> Service | None:
        return next((s for s in self.services if s.service_name == name), None)

    def staff_by_id(self, staff_id: int) -> StaffMember | None:
        return next((s for s in self.staff if s.staff_id == staff_id), None)


@dataclass
class Config:
    export_dir: str = "exports"
    notice_seconds: int = 3
