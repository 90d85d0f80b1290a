"""Modal screens for the targets editor."""

from __future__ import annotations

from pathlib import Path

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.coordinate import Coordinate
from textual.widgets import Button, DataTable, Input, Label
from textual.screen import ModalScreen

from guard import Resolution
from models import FinancialYear


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no confirmation dialog."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #confirm-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #confirm-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.message)
            with Horizontal(id="confirm-buttons"):
                yield Button("Yes (Y)", variant="warning", id="yes")
                yield Button("No (N)", variant="default", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class UnsavedChangesScreen(ModalScreen[Resolution]):
    """Asks what to do with unsaved targets before leaving the current year."""

    CSS = """
    UnsavedChangesScreen {
        align: center middle;
    }

    #unsaved-dialog {
        width: 64;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #unsaved-title {
        width: 100%;
        text-style: bold;
        margin-bottom: 1;
    }

    #unsaved-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #unsaved-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("s", "resolve('save')", "Save & Continue"),
        Binding("d", "resolve('discard')", "Discard"),
        Binding("escape", "resolve('cancel')", "Cancel"),
    ]

    def __init__(self, message: str = "You have unsaved changes."):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="unsaved-dialog"):
            yield Label("Unsaved Changes", id="unsaved-title")
            yield Label(self.message)
            with Horizontal(id="unsaved-buttons"):
                yield Button("Save & Continue (S)", variant="primary", id="save")
                yield Button("Discard (D)", variant="error", id="discard")
                yield Button("Cancel (Esc)", variant="default", id="cancel")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(Resolution(event.button.id))

    def action_resolve(self, choice: str) -> None:
        self.dismiss(Resolution(choice))


class FinancialYearScreen(ModalScreen[FinancialYear | None]):
    """Pick the financial year to edit."""

    CSS = """
    FinancialYearScreen {
        align: center middle;
    }

    #fy-dialog {
        width: 40;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #fy-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #fy-table {
        height: auto;
        max-height: 10;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, years: list[FinancialYear], current: FinancialYear):
        super().__init__()
        self.years = years
        self.current = current

    def compose(self) -> ComposeResult:
        with Vertical(id="fy-dialog"):
            yield Label("Financial Year", id="fy-title")
            yield DataTable(id="fy-table")

    def on_mount(self) -> None:
        table = self.query_one("#fy-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Year", width=10)
        table.add_column("Period", width=20)
        for fy in self.years:
            marker = " *" if fy == self.current else ""
            table.add_row(f"{fy.label}{marker}", f"Apr {fy.start} - Mar {fy.end}", key=str(fy.start))
        if self.current in self.years:
            table.move_cursor(row=self.years.index(self.current))
        table.focus()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self.dismiss(self._selected_year())

    def _selected_year(self) -> FinancialYear | None:
        table = self.query_one("#fy-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        if row_key is None or row_key.value is None:
            return None
        return FinancialYear.starting(int(row_key.value))

    def action_cancel(self) -> None:
        self.dismiss(None)


class ImportScreen(ModalScreen[Path | None]):
    """Ask for the CSV file to import."""

    CSS = """
    ImportScreen {
        align: center middle;
    }

    #import-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #import-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-label {
        height: 1;
        color: $text-muted;
    }

    #import-path {
        width: 100%;
    }

    #import-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #import-buttons Button {
        width: auto;
        min-width: 12;
        margin: 0 2;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, default_path: str = ""):
        super().__init__()
        self.default_path = default_path

    def compose(self) -> ComposeResult:
        with Vertical(id="import-dialog"):
            yield Label("Import Targets CSV", id="import-title")
            yield Label("CSV file path", classes="field-label")
            yield Input(value=self.default_path, placeholder="targets_2024-25.csv", id="import-path")
            with Horizontal(id="import-buttons"):
                yield Button("Import", variant="primary", id="import")
                yield Button("Cancel", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#import-path", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "import":
            self._submit()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _submit(self) -> None:
        value = self.query_one("#import-path", Input).value.strip()
        if not value:
            self.app.notify("File path is required", severity="error")
            return

        path = Path(value).expanduser()
        if not path.is_file():
            self.app.notify(f"File not found: {path}", severity="error")
            return

        self.dismiss(path)
