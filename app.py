#!/usr/bin/env python3
"""Targets control TUI: monthly staff targets per service for a financial year."""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
from datetime import date
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Input, Static

import storage
import sync
from export import export_csv, export_template
from grid import TargetGrid
from guard import ExitGuard, Resolution
from import_data import CsvImportError, import_targets
from models import CellKey, EditorContext, FinancialYear
from navigation import advance
from screens import ConfirmScreen, FinancialYearScreen, ImportScreen, UnsavedChangesScreen
from utils import FY_MONTHS, financial_year_containing, financial_years, working_days_in_month
from widgets import EditorHeader, StaffTargets, TargetCell, cell_id

logger = logging.getLogger(__name__)


class TargetsApp(App):
    """Edit monthly targets for every staff member and service."""

    CSS = """
    Screen {
        background: $surface;
    }

    #editor-header {
        height: auto;
        background: $primary;
        color: $text;
        padding: 0 1;
        text-style: bold;
    }

    #targets-container {
        height: 1fr;
        margin: 1 2 0 2;
    }

    StaffTargets {
        height: auto;
        margin-bottom: 1;
    }

    .staff-title {
        text-style: bold;
        color: $accent;
    }

    .staff-grid {
        grid-size: 14;
        grid-columns: 20 7 7 7 7 7 7 7 7 7 7 7 7 9;
        grid-rows: 1;
        height: auto;
    }

    .grid-head {
        text-style: bold;
        color: $text-muted;
    }

    .grid-note {
        color: $text-muted;
        text-style: italic;
    }

    .total, .total-label {
        text-style: bold;
    }

    TargetCell {
        height: 1;
        border: none;
        padding: 0;
        width: 100%;
    }

    TargetCell:focus {
        border: none;
        background: $secondary;
    }

    #totals-header {
        height: auto;
        padding: 0 2;
        text-style: bold;
    }

    #service-totals {
        height: auto;
        max-height: 12;
        margin: 0 2 1 2;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
        Binding("ctrl+s", "save", "Save"),
        Binding("f2", "select_year", "Year"),
        Binding("f7", "prev_year", "Prev FY"),
        Binding("f8", "next_year", "Next FY"),
        Binding("f5", "reload", "Reload"),
        Binding("ctrl+e", "export", "Export"),
        Binding("ctrl+t", "template", "Template"),
        Binding("ctrl+o", "import", "Import"),
    ]

    def __init__(self, today: date | None = None):
        super().__init__()
        storage.init_db()
        self.config = storage.get_config()
        self.today = today or date.today()

        # Directories are read once; the editor never changes them
        self.staff = storage.get_all_staff()
        self.services = storage.get_all_services()
        self.context = EditorContext(
            financial_year=financial_year_containing(self.today),
            staff=self.staff,
            services=self.services,
        )

        self.grid: TargetGrid | None = None
        self.guard = ExitGuard(lambda: self.grid)
        self.saving = False
        self._save_task: asyncio.Task[bool] | None = None

    @property
    def has_unsaved_changes(self) -> bool:
        """Consulted before quitting."""
        return self.guard.has_unsaved_changes

    def compose(self) -> ComposeResult:
        yield EditorHeader(id="editor-header")
        yield VerticalScroll(id="targets-container")
        yield Static("Service Totals by Month (all staff, read-only)", id="totals-header")
        yield DataTable(id="service-totals")
        yield Footer()

    def on_mount(self):
        self._setup_totals_table()
        self._update_header()
        self.load_targets()

    def _setup_totals_table(self):
        table = self.query_one("#service-totals", DataTable)
        table.cursor_type = "none"
        table.add_column("Service", width=20)
        for _, name in FY_MONTHS:
            table.add_column(name, width=6)
        table.add_column("Total", width=8)

    # --- Loading ---

    @work(exclusive=True, group="load")
    async def load_targets(self) -> None:
        """Replace the grid with the stored targets for the current financial year."""
        container = self.query_one("#targets-container", VerticalScroll)
        if not self.staff or not self.services:
            self.notify("No staff or services configured", severity="warning")
            return

        fy = self.context.financial_year
        self.grid = None
        container.loading = True
        try:
            grid = await sync.load_grid(storage, self.context)
        except sqlite3.Error as e:
            logger.exception("Failed to load targets for FY %s", fy.label)
            await container.remove_children()
            container.loading = False
            self.notify(f"Failed to load targets: {e}", severity="error")
            self._refresh_service_totals()
            self._update_header()
            return

        working_days = {month: working_days_in_month(month, fy) for month, _ in FY_MONTHS}
        self.grid = grid
        await container.remove_children()
        await container.mount_all(
            StaffTargets(grid, staff, working_days, id=f"staff-{staff.staff_id}")
            for staff in grid.staff
        )
        container.loading = False

        self._refresh_service_totals()
        self._update_header()
        self.refresh_bindings()

        first = CellKey(grid.staff[0].staff_id, FY_MONTHS[0][0], grid.services[0].service_name)
        self.call_after_refresh(self._focus_cell, first)

    # --- Cell editing ---

    def _find_cell(self, key: CellKey) -> TargetCell | None:
        if self.grid is None:
            return None
        service_idx = next(
            (i for i, s in enumerate(self.grid.services) if s.service_name == key.service_name), None
        )
        if service_idx is None:
            return None
        try:
            return self.query_one(f"#{cell_id(key.staff_id, key.month, service_idx)}", TargetCell)
        except NoMatches:
            return None

    def _focus_cell(self, key: CellKey) -> None:
        cell = self._find_cell(key)
        if cell is not None:
            cell.focus()
            cell.select_all()

    def on_input_changed(self, event: Input.Changed) -> None:
        cell = event.input
        grid = self.grid
        if grid is None or not isinstance(cell, TargetCell) or cell.source is not grid:
            return
        if event.value != grid.read_cell(*cell.key):
            grid.stage_edit(*cell.key, event.value)
            self.refresh_bindings()

    def on_input_blurred(self, event: Input.Blurred) -> None:
        cell = event.input
        if isinstance(cell, TargetCell):
            self._commit_cell(cell)

    def on_target_cell_navigate(self, event: TargetCell.Navigate) -> None:
        cell = event.cell
        grid = self.grid
        if grid is None or cell.source is not grid:
            return
        target = advance(grid, cell.key, cell.value, event.forward)
        self._after_commit(cell)
        # Target may not be laid out yet; move focus once this refresh completes
        self.call_after_refresh(self._focus_cell, target)

    def _commit_cell(self, cell: TargetCell) -> None:
        grid = self.grid
        if grid is None or cell.source is not grid:
            return
        grid.commit_edit(*cell.key, cell.value)
        self._after_commit(cell)

    def _commit_focused(self) -> None:
        focused = self.focused
        if isinstance(focused, TargetCell):
            self._commit_cell(focused)

    def _after_commit(self, cell: TargetCell) -> None:
        """Show the committed value (reverting rejected text) and refresh totals."""
        if self.grid is None:
            return
        with cell.prevent(Input.Changed):
            cell.value = self.grid.read_cell(*cell.key)

        self.query_one(f"#staff-{cell.key.staff_id}", StaffTargets).refresh_totals()
        self._refresh_service_totals()
        self._update_header()
        self.refresh_bindings()

    # --- Display ---

    def _update_header(self):
        header = self.query_one("#editor-header", EditorHeader)
        dirty = self.grid.dirty if self.grid else False
        header.update_display(self.context.financial_year, dirty, self.saving)

    def _refresh_service_totals(self):
        table = self.query_one("#service-totals", DataTable)
        table.clear()
        grid = self.grid
        if grid is None:
            return

        for service in grid.services:
            name = service.service_name
            table.add_row(
                name[:20],
                *(str(grid.service_monthly_total(month, name)) for month, _ in FY_MONTHS),
                str(grid.service_annual_total(name)),
            )
        table.add_row(
            "Monthly Total",
            *(str(grid.month_grand_total(month)) for month, _ in FY_MONTHS),
            str(grid.grand_total()),
        )

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Disable actions that make no sense in the current state."""
        if action == "save":
            # Disabled while a save is in flight so saves never overlap
            if self.grid is None or self.saving:
                return False
            return bool(self.grid.dirty or self.grid.buffer)
        elif action in ("export", "reload"):
            return self.grid is not None
        return True

    # --- Saving ---

    def action_save(self) -> None:
        self._commit_focused()
        if self.grid is None or self.saving:
            return
        self.run_worker(self._save(), group="save")

    async def _save(self) -> bool:
        """Save the grid, joining a save that is already running instead of overlapping it."""
        while self._save_task is not None:
            ok = await asyncio.shield(self._save_task)
            if not ok or self.grid is None or not self.grid.dirty:
                return ok

        grid = self.grid
        if grid is None:
            return False
        self._save_task = asyncio.create_task(self._write_grid(grid))
        return await asyncio.shield(self._save_task)

    async def _write_grid(self, grid: TargetGrid) -> bool:
        self.saving = True
        self._update_header()
        self.refresh_bindings()
        try:
            result = await sync.save_grid(storage, grid)
        finally:
            self.saving = False
            self._save_task = None

        if result.ok:
            self.notify("Targets saved successfully", timeout=self.config.notice_seconds)
        else:
            # Staff already written stay written; saving again rewrites everyone
            self.notify("Failed to save targets", severity="error")

        self._update_header()
        self.refresh_bindings()
        return result.ok

    # --- Exit guard ---

    def _guarded(self, action, message: str = "You have unsaved changes.") -> None:
        """Run an action that replaces the grid, asking first if edits are unsaved."""
        self._commit_focused()
        if not self.guard.request(action):
            self.push_screen(UnsavedChangesScreen(message), self._on_unsaved_resolved)

    def _on_unsaved_resolved(self, resolution: Resolution | None) -> None:
        self.run_worker(self.guard.resolve(resolution or Resolution.CANCEL, self._save), group="guard")

    async def action_quit(self) -> None:
        self._guarded(self.exit, "You have unsaved changes. Save before quitting?")

    # --- Financial year ---

    def request_year(self, fy: FinancialYear) -> None:
        if fy == self.context.financial_year:
            return
        self._guarded(
            lambda: self._switch_year(fy),
            f"You have unsaved changes for {self.context.financial_year.label}.",
        )

    def _switch_year(self, fy: FinancialYear) -> None:
        logger.info("Switching to FY %s", fy.label)
        self.context = EditorContext(financial_year=fy, staff=self.staff, services=self.services)
        self.grid = None
        self._update_header()
        self.load_targets()

    def action_select_year(self):
        self._commit_focused()
        years = financial_years(self.today)
        self.push_screen(FinancialYearScreen(years, self.context.financial_year), self._on_year_selected)

    def _on_year_selected(self, fy: FinancialYear | None) -> None:
        if fy:
            self.request_year(fy)

    def action_prev_year(self):
        self.request_year(FinancialYear.starting(self.context.financial_year.start - 1))

    def action_next_year(self):
        self.request_year(FinancialYear.starting(self.context.financial_year.start + 1))

    def action_reload(self):
        self._guarded(self.load_targets)

    # --- CSV ---

    def action_export(self):
        self._commit_focused()
        if self.grid is None:
            return
        try:
            path = export_csv(self.grid, Path(self.config.export_dir))
        except OSError as e:
            logger.exception("Export failed")
            self.notify(f"Failed to export targets: {e}", severity="error")
            return
        self.notify(f"Exported {path}")

    def action_template(self):
        try:
            path = export_template(
                self.context.financial_year, self.staff, self.services, Path(self.config.export_dir)
            )
        except OSError as e:
            logger.exception("Template export failed")
            self.notify(f"Failed to write template: {e}", severity="error")
            return
        self.notify(f"Template written to {path}")

    def action_import(self):
        self._commit_focused()
        self.push_screen(ImportScreen(), self._on_import_path)

    def _on_import_path(self, path: Path | None) -> None:
        if path is None:
            return
        self.push_screen(
            ConfirmScreen(f"Import {path.name}? Matching stored targets will be replaced."),
            lambda confirmed: self._on_import_confirmed(confirmed, path),
        )

    def _on_import_confirmed(self, confirmed: bool | None, path: Path) -> None:
        if confirmed:
            self._guarded(lambda: self._import(path))

    def _import(self, path: Path) -> None:
        try:
            count = import_targets(path, self.staff, self.services)
        except CsvImportError as e:
            self.notify(str(e), severity="error")
            return
        except (OSError, sqlite3.Error) as e:
            logger.exception("Import from %s failed", path)
            self.notify(f"Failed to import targets: {e}", severity="error")
            return

        self.notify(f"Imported {count} targets from {path.name}", timeout=self.config.notice_seconds)
        self.load_targets()


def _configure_logging():
    """Log to a file; the terminal belongs to the UI."""
    log_path = Path(os.environ.get("TARGETS_LOG") or storage.DB_PATH.parent / "targets.log")
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    import sys
    if len(sys.argv) > 1 and sys.argv[1] == "--db-info":
        from datetime import datetime
        db_path = storage.DB_PATH
        print(f"Database: {db_path}")
        if db_path.exists():
            mtime = datetime.fromtimestamp(db_path.stat().st_mtime)
            size = db_path.stat().st_size
            print(f"Modified: {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
            print(f"Size: {size:,} bytes")
        else:
            print("Status: Does not exist (will be created on first run)")
        return

    _configure_logging()
    app = TargetsApp()
    app.run()


if __name__ == "__main__":
    main()
