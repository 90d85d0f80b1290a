"""Unsaved-changes guard for year switches and quitting."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from grid import TargetGrid

logger = logging.getLogger(__name__)


class EditorState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


class Resolution(str, Enum):
    SAVE = "save"
    DISCARD = "discard"
    CANCEL = "cancel"


class ExitGuard:
    """Holds back actions that would throw away unsaved edits.

    While the grid is dirty a requested action is parked as ``pending`` and
    the caller asks the user how to resolve it.
    """

    def __init__(self, grid_source: Callable[[], TargetGrid | None]):
        self._grid_source = grid_source
        self.pending: Callable[[], None] | None = None

    @property
    def state(self) -> EditorState:
        grid = self._grid_source()
        if grid is not None and grid.dirty:
            return EditorState.DIRTY
        return EditorState.CLEAN

    @property
    def has_unsaved_changes(self) -> bool:
        return self.state is EditorState.DIRTY

    def request(self, action: Callable[[], None]) -> bool:
        """Run ``action`` now if clean. Returns False when confirmation is needed."""
        if not self.has_unsaved_changes:
            action()
            return True
        self.pending = action
        return False

    async def resolve(
        self,
        resolution: Resolution,
        save: Callable[[], Awaitable[bool]],
    ) -> bool:
        """Settle the pending action. Returns True if it was applied."""
        action, self.pending = self.pending, None
        if action is None:
            return False

        if resolution is Resolution.CANCEL:
            return False

        if resolution is Resolution.SAVE:
            if not await save():
                logger.info("Save failed; staying on current financial year")
                return False

        action()
        return True
