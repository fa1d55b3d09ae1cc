# -*- coding: utf-8 -*-
"""Explicit change notification.

A tiny stand-in for ``pyqtSignal`` that works without a Qt event loop::

    path.changed.connect(lambda p: redraw(p))
    path.changed.emit(path)
"""

from __future__ import annotations

from typing import Any, Callable, List


class Signal:
    def __init__(self) -> None:
        self._slots: List[Callable[..., Any]] = []
        self._blocked = 0

    def connect(self, slot: Callable[..., Any]) -> Callable[[], None]:
        """Register ``slot``; returns a callable that disconnects it."""
        self._slots.append(slot)

        def _disconnect() -> None:
            self.disconnect(slot)

        return _disconnect

    def disconnect(self, slot: Callable[..., Any]) -> None:
        try:
            self._slots.remove(slot)
        except ValueError:
            pass

    def emit(self, *args: Any) -> None:
        if self._blocked:
            return
        for slot in list(self._slots):
            slot(*args)

    def block(self) -> None:
        self._blocked += 1

    def unblock(self) -> None:
        self._blocked = max(0, self._blocked - 1)

    def __len__(self) -> int:
        return len(self._slots)
