"""Tests for the app module."""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

import storage
from models import Config, FinancialYear, Service, StaffMember, TargetRecord


@pytest.fixture
def seeded_db(clean_db):
    """Two staff members and two services in the session database."""
    storage.save_staff(StaffMember(1, "Alice Brown"))
    storage.save_staff(StaffMember(2, "Ben Carter"))
    storage.save_service(Service(10, "A"))
    storage.save_service(Service(20, "B"))


@pytest.fixture
def app(seeded_db):
    from app import TargetsApp

    with patch.object(TargetsApp, 'run'):
        yield TargetsApp(today=date(2024, 10, 18))


@pytest.fixture
def loaded_app(app):
    """App with an all-zero grid for FY 2024/25 and display calls stubbed out."""
    from grid import TargetGrid

    app.grid = TargetGrid(app.context)
    app.grid.load([])
    app._commit_focused = MagicMock()
    app._update_header = MagicMock()
    app.refresh_bindings = MagicMock()
    app.notify = MagicMock()
    app.push_screen = MagicMock()
    return app


class TestAppInit:
    """Tests for TargetsApp initialisation."""

    def test_reads_directories(self, app):
        assert [s.name for s in app.staff] == ["Alice Brown", "Ben Carter"]
        assert [s.service_name for s in app.services] == ["A", "B"]

    def test_starts_on_current_financial_year(self, app):
        assert app.context.financial_year == FinancialYear(2024, 2025)

    def test_no_grid_until_loaded(self, app):
        assert app.grid is None
        assert not app.has_unsaved_changes

    def test_reads_config(self, seeded_db):
        from app import TargetsApp

        storage.save_config(Config(export_dir="out", notice_seconds=7))
        with patch.object(TargetsApp, 'run'):
            app = TargetsApp()

        assert app.config.export_dir == "out"
        assert app.config.notice_seconds == 7


class TestCheckAction:
    """Tests for enabling and disabling actions."""

    def test_save_disabled_without_grid(self, app):
        assert app.check_action("save", ()) is False

    def test_save_disabled_when_clean(self, loaded_app):
        assert loaded_app.check_action("save", ()) is False

    def test_save_enabled_when_dirty(self, loaded_app):
        loaded_app.grid.commit_edit(1, 4, "A", "5")
        assert loaded_app.check_action("save", ()) is True

    def test_save_enabled_with_pending_text(self, loaded_app):
        loaded_app.grid.stage_edit(1, 4, "A", "5")
        assert loaded_app.check_action("save", ()) is True

    def test_save_disabled_while_saving(self, loaded_app):
        loaded_app.grid.commit_edit(1, 4, "A", "5")
        loaded_app.saving = True
        assert loaded_app.check_action("save", ()) is False

    def test_export_needs_grid(self, loaded_app):
        assert loaded_app.check_action("export", ()) is True
        loaded_app.grid = None
        assert loaded_app.check_action("export", ()) is False

    def test_other_actions_enabled(self, app):
        assert app.check_action("select_year", ()) is True


class TestYearSwitching:
    """Tests for moving between financial years."""

    def test_same_year_ignored(self, loaded_app):
        loaded_app._switch_year = MagicMock()

        loaded_app.request_year(FinancialYear(2024, 2025))

        loaded_app._switch_year.assert_not_called()
        loaded_app.push_screen.assert_not_called()

    def test_clean_switches_immediately(self, loaded_app):
        loaded_app._switch_year = MagicMock()

        loaded_app.request_year(FinancialYear(2025, 2026))

        loaded_app._switch_year.assert_called_once_with(FinancialYear(2025, 2026))
        loaded_app.push_screen.assert_not_called()

    def test_dirty_asks_first(self, loaded_app):
        from screens import UnsavedChangesScreen

        loaded_app._switch_year = MagicMock()
        loaded_app.grid.commit_edit(1, 4, "A", "5")

        loaded_app.request_year(FinancialYear(2025, 2026))

        loaded_app._switch_year.assert_not_called()
        screen = loaded_app.push_screen.call_args[0][0]
        assert isinstance(screen, UnsavedChangesScreen)
        assert "2024/25" in screen.message
        assert loaded_app.guard.pending is not None

    def test_prev_and_next_year(self, loaded_app):
        loaded_app.request_year = MagicMock()

        loaded_app.action_prev_year()
        loaded_app.action_next_year()

        assert [c.args[0] for c in loaded_app.request_year.call_args_list] == [
            FinancialYear(2023, 2024),
            FinancialYear(2025, 2026),
        ]

    def test_year_selector_cancel(self, loaded_app):
        loaded_app.request_year = MagicMock()
        loaded_app._on_year_selected(None)
        loaded_app.request_year.assert_not_called()

    def test_dirty_quit_asks_first(self, loaded_app):
        loaded_app.exit = MagicMock()
        loaded_app.grid.commit_edit(1, 4, "A", "5")

        asyncio.run(loaded_app.action_quit())

        loaded_app.exit.assert_not_called()
        loaded_app.push_screen.assert_called_once()
        assert loaded_app.has_unsaved_changes


class TestStaleCells:
    """Events from cells of a replaced or unloaded grid are ignored."""

    def test_blur_from_replaced_grid(self, loaded_app):
        from grid import TargetGrid
        from models import CellKey
        from widgets import TargetCell

        old_grid = TargetGrid(loaded_app.context)
        old_grid.load([])
        cell = TargetCell(CellKey(1, 4, "A"), value="9", source=old_grid)

        loaded_app.on_input_blurred(MagicMock(input=cell))

        assert loaded_app.grid.value(1, 4, "A") == 0
        assert not loaded_app.grid.dirty

    def test_events_without_grid(self, loaded_app):
        from models import CellKey
        from widgets import TargetCell

        cell = TargetCell(CellKey(1, 4, "A"), value="9", source=loaded_app.grid)
        loaded_app.grid = None

        loaded_app.on_input_blurred(MagicMock(input=cell))
        loaded_app.on_input_changed(MagicMock(input=cell, value="9"))
        loaded_app.on_target_cell_navigate(MagicMock(cell=cell, forward=True))

        assert loaded_app.grid is None


class TestSave:
    """Tests for saving from the app."""

    def test_save_writes_and_cleans(self, loaded_app):
        loaded_app.grid.commit_edit(1, 2, "A", "10")

        assert asyncio.run(loaded_app._save()) is True

        assert not loaded_app.grid.dirty
        assert not loaded_app.saving
        stored = {(r.month, r.year): r.target_value for r in storage.get_targets(1, [2025]) if r.service_id == 10}
        assert stored[(2, 2025)] == 10
        loaded_app.notify.assert_called_once_with("Targets saved successfully", timeout=3)

    def test_concurrent_saves_share_one_write(self, loaded_app):
        """Save & Continue during a running save waits for it rather than writing twice."""
        import sync

        calls = []
        real_save = sync.save_grid

        async def counting_save(store, grid):
            calls.append(grid.revision)
            return await real_save(store, grid)

        loaded_app.grid.commit_edit(1, 4, "A", "5")

        async def run():
            return await asyncio.gather(loaded_app._save(), loaded_app._save())

        with patch("sync.save_grid", counting_save):
            results = asyncio.run(run())

        assert results == [True, True]
        assert len(calls) == 1
        assert not loaded_app.grid.dirty
        loaded_app.notify.assert_called_once_with("Targets saved successfully", timeout=3)
        assert len(storage.get_targets(None, [2024, 2025])) == 2 * 12 * 2

    def test_joining_save_writes_later_edits(self, loaded_app):
        import sync

        calls = []
        real_save = sync.save_grid

        async def save_then_edit(store, grid):
            calls.append(grid.revision)
            result = await real_save(store, grid)
            if len(calls) == 1:
                # Edit committed while the first save is still finishing
                grid.commit_edit(1, 5, "A", "7")
            return result

        loaded_app.grid.commit_edit(1, 4, "A", "5")

        async def run():
            return await asyncio.gather(loaded_app._save(), loaded_app._save())

        with patch("sync.save_grid", save_then_edit):
            results = asyncio.run(run())

        assert results == [True, True]
        assert len(calls) == 2
        assert not loaded_app.grid.dirty
        stored = {r.month: r.target_value for r in storage.get_targets(1, [2024]) if r.service_id == 10}
        assert stored[4] == 5
        assert stored[5] == 7

    def test_failed_save_stays_dirty(self, loaded_app):
        from sync import SaveResult

        loaded_app.grid.commit_edit(1, 2, "A", "10")
        failed = SaveResult(saved=[1], failed={2: RuntimeError("locked")})

        with patch("sync.save_grid", return_value=failed):
            assert asyncio.run(loaded_app._save()) is False

        assert loaded_app.grid.dirty
        assert loaded_app.notify.call_args.kwargs["severity"] == "error"


class TestCsvActions:
    """Tests for export, template and import actions."""

    def test_export(self, loaded_app, tmp_path):
        loaded_app.config.export_dir = str(tmp_path)

        loaded_app.action_export()

        assert (tmp_path / "targets_2024-25.csv").exists()
        assert "Exported" in loaded_app.notify.call_args[0][0]

    def test_template(self, loaded_app, tmp_path):
        loaded_app.config.export_dir = str(tmp_path)

        loaded_app.action_template()

        assert (tmp_path / "targets_template_2024-25.csv").exists()

    def test_import_reloads(self, loaded_app, tmp_path):
        loaded_app.load_targets = MagicMock()
        path = tmp_path / "targets.csv"
        path.write_text("staff_id,service_id,month,year,target_value\n2,20,6,2024,9\n", encoding="utf-8")

        loaded_app._import(path)

        assert [(r.month, r.target_value) for r in storage.get_targets(2, [2024])] == [(6, 9)]
        loaded_app.load_targets.assert_called_once()

    def test_import_error_reported(self, loaded_app, tmp_path):
        loaded_app.load_targets = MagicMock()
        path = tmp_path / "targets.csv"
        path.write_text("staff_id,month\n1,4\n", encoding="utf-8")

        loaded_app._import(path)

        assert loaded_app.notify.call_args.kwargs["severity"] == "error"
        loaded_app.load_targets.assert_not_called()


class TestEditing:
    """Drives the editor through a headless terminal."""

    def test_type_and_tab_commits(self, seeded_db):
        from app import TargetsApp
        from models import CellKey
        from widgets import TargetCell

        storage.insert_targets([TargetRecord(2, 20, 1, 2025, 4)])

        async def run():
            app = TargetsApp(today=date(2024, 10, 18))
            async with app.run_test() as pilot:
                await app.workers.wait_for_complete()
                await pilot.pause()

                assert app.grid is not None
                assert app.grid.value(2, 1, "B") == 4
                assert isinstance(app.focused, TargetCell)
                assert app.focused.key == CellKey(1, 4, "A")

                await pilot.press("1", "2", "tab")
                await pilot.pause()

                assert app.grid.value(1, 4, "A") == 12
                assert app.grid.monthly_total(1, 4) == 12
                assert app.has_unsaved_changes
                assert app.focused.key == CellKey(1, 5, "A")

        asyncio.run(run())
