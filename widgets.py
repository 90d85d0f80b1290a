"""Custom widgets for the targets editor."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Grid, Vertical
from textual.message import Message
from textual.widgets import Input, Label, Static
from rich.text import Text

from grid import TargetGrid
from models import CellKey, FinancialYear, StaffMember
from utils import FY_MONTHS


def cell_id(staff_id: int, month: int, service_idx: int) -> str:
    """Widget id for a target cell (service names may not be valid ids)."""
    return f"cell-{staff_id}-{month}-{service_idx}"


class EditorHeader(Static):
    """Shows the financial year on the left and save state on the right."""

    def update_display(self, fy: FinancialYear, dirty: bool, saving: bool = False):
        title = f"TARGETS CONTROL: FY {fy.label}"
        if saving:
            status, style = "Saving...", "bold"
        elif dirty:
            status, style = "● Unsaved changes", "bold yellow"
        else:
            status, style = "All changes saved", "dim"

        text = Text()
        text.append(title, style="bold")
        # Right-align status against a 74 column layout
        spacing = 74 - len(title) - len(status)
        text.append(" " * max(spacing, 2))
        text.append(status, style=style)
        self.update(text)


class TargetCell(Input):
    """One editable target value. Tab and Shift+Tab walk the whole grid."""

    BINDINGS = [
        Binding("tab", "next_cell", "Next", show=False),
        Binding("shift+tab", "prev_cell", "Previous", show=False),
    ]

    class Navigate(Message):
        """Posted when the user tabs out of a cell."""

        def __init__(self, cell: TargetCell, forward: bool):
            super().__init__()
            self.cell = cell
            self.forward = forward

    def __init__(self, key: CellKey, value: str, source: TargetGrid | None = None, **kwargs):
        super().__init__(value=value, **kwargs)
        self.key = key
        # Grid this cell was built from; cells from a replaced grid are ignored
        self.source = source

    def action_next_cell(self) -> None:
        self.post_message(self.Navigate(self, forward=True))

    def action_prev_cell(self) -> None:
        self.post_message(self.Navigate(self, forward=False))


class StaffTargets(Vertical):
    """Service x month grid for one staff member, with row and column totals."""

    def __init__(self, grid: TargetGrid, staff: StaffMember, working_days: dict[int, int], **kwargs):
        super().__init__(**kwargs)
        self.grid = grid
        self.staff = staff
        self.working_days = working_days

    def compose(self) -> ComposeResult:
        grid = self.grid
        staff_id = self.staff.staff_id
        yield Label(f"{self.staff.name} - Targets ({grid.financial_year.label})", classes="staff-title")

        with Grid(classes="staff-grid"):
            # Header row
            yield Label("Service", classes="grid-head")
            for _, name in FY_MONTHS:
                yield Label(name, classes="grid-head")
            yield Label("Total", classes="grid-head")

            # Working days give context when setting a month's targets
            yield Label("Working days", classes="grid-note")
            for month, _ in FY_MONTHS:
                yield Label(str(self.working_days.get(month, "")), classes="grid-note")
            yield Label("", classes="grid-note")

            for idx, service in enumerate(grid.services):
                yield Label(service.service_name, classes="service-name")
                for month, _ in FY_MONTHS:
                    key = CellKey(staff_id, month, service.service_name)
                    yield TargetCell(
                        key,
                        value=grid.read_cell(*key),
                        source=grid,
                        id=cell_id(staff_id, month, idx),
                    )
                yield Label(
                    str(grid.annual_total(staff_id, service.service_name)),
                    id=f"annual-{staff_id}-{idx}",
                    classes="total",
                )

            yield Label("Monthly Total", classes="total-label")
            for month, _ in FY_MONTHS:
                yield Label(
                    str(grid.monthly_total(staff_id, month)),
                    id=f"monthly-{staff_id}-{month}",
                    classes="total",
                )
            yield Label(str(grid.staff_total(staff_id)), id=f"staff-total-{staff_id}", classes="total")

    def refresh_totals(self) -> None:
        """Recompute row, column and overall totals from the grid."""
        grid = self.grid
        staff_id = self.staff.staff_id
        for idx, service in enumerate(grid.services):
            self.query_one(f"#annual-{staff_id}-{idx}", Label).update(
                str(grid.annual_total(staff_id, service.service_name))
            )
        for month, _ in FY_MONTHS:
            self.query_one(f"#monthly-{staff_id}-{month}", Label).update(
                str(grid.monthly_total(staff_id, month))
            )
        self.query_one(f"#staff-total-{staff_id}", Label).update(str(grid.staff_total(staff_id)))
