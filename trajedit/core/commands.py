# -*- coding: utf-8 -*-
"""Undo/Redo history.

The history is a log of document snapshots with a cursor (``undo_idx``).
Entry 0 is the baseline recorded by :meth:`CommandStack.clear`; every user
edit appends the snapshot taken *after* the edit::

    stack.push("Add Waypoint")      # after mutating the document
    stack.undo()                    # restores entry undo_idx - 1
    stack.redo()

Mutations that are side effects of the solver (generation results, the
``generating`` flag) run inside :meth:`CommandStack.without_undo` and are never
recorded.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from .signals import Signal


@dataclass(frozen=True)
class Command:
    desc: str
    snapshot: Dict[str, Any]


class CommandStack:
    def __init__(
        self,
        snapshot: Callable[[], Dict[str, Any]],
        restore: Callable[[Dict[str, Any]], None],
        on_change: Optional[Callable[[], None]] = None,
    ):
        self._snapshot = snapshot
        self._restore = restore
        self._entries: List[Command] = []
        self._undo_idx = 0
        self._suspended = 0
        self.changed = Signal()
        if on_change is not None:
            self.changed.connect(on_change)

    @property
    def undo_idx(self) -> int:
        return self._undo_idx

    def __len__(self) -> int:
        return len(self._entries)

    def _changed(self) -> None:
        self.changed.emit()

    def clear(self) -> None:
        self._entries = [Command("", self._snapshot())]
        self._undo_idx = 0
        self._changed()

    @property
    def recording(self) -> bool:
        return self._suspended == 0

    @contextlib.contextmanager
    def without_undo(self) -> Iterator[None]:
        self._suspended += 1
        try:
            yield
        finally:
            self._suspended -= 1

    def push(self, desc: str = "") -> bool:
        """Record the current document state. Returns False while suspended."""
        if not self.recording:
            return False
        if not self._entries:
            self._entries = [Command("", self._snapshot())]
            self._undo_idx = 0
        del self._entries[self._undo_idx + 1:]
        self._entries.append(Command(desc, self._snapshot()))
        self._undo_idx = len(self._entries) - 1
        self._changed()
        return True

    def can_undo(self) -> bool:
        return self._undo_idx > 0

    def can_redo(self) -> bool:
        return self._undo_idx < len(self._entries) - 1

    def _apply(self, idx: int) -> None:
        self._undo_idx = idx
        with self.without_undo():
            self._restore(self._entries[idx].snapshot)
        self._changed()

    def undo(self) -> None:
        if not self.can_undo():
            return
        self._apply(self._undo_idx - 1)

    def redo(self) -> None:
        if not self.can_redo():
            return
        self._apply(self._undo_idx + 1)

    def undo_text(self) -> str:
        if not self.can_undo():
            return ""
        return self._entries[self._undo_idx].desc

    def redo_text(self) -> str:
        if not self.can_redo():
            return ""
        return self._entries[self._undo_idx + 1].desc
