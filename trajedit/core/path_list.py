# -*- coding: utf-8 -*-
"""The collection of paths in a document and the active-path pointer.

Invariants: at least one path exists, and ``active_path_uuid`` always names
one of them.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from .path import Path
from .signals import Signal


class PathList:
    def __init__(self, default_name: str = "NewPath", default_control_interval_count: int = 40):
        self.default_name = default_name
        self.default_control_interval_count = int(default_control_interval_count)
        self.paths: Dict[str, Path] = {}
        self.active_path_uuid = ""
        self.changed = Signal()
        # Called with every path that joins the collection.
        self.attach_hook: Optional[Callable[[Path], None]] = None

    # ---------- views ----------
    @property
    def path_uuids(self) -> List[str]:
        return list(self.paths.keys())

    @property
    def path_names(self) -> List[str]:
        return [p.name for p in self.paths.values()]

    @property
    def active_path(self) -> Path:
        return self.paths[self.active_path_uuid]

    def get(self, uuid: str) -> Optional[Path]:
        return self.paths.get(uuid)

    def find_by_name(self, name: str) -> Optional[Path]:
        for path in self.paths.values():
            if path.name == name:
                return path
        return None

    def unique_name(self, base: str) -> str:
        names = set(self.path_names)
        if base not in names:
            return base
        n = 1
        while f"{base}{n}" in names:
            n += 1
        return f"{base}{n}"

    # ---------- editing ----------
    def _attach(self, path: Path) -> None:
        self.paths[path.uuid] = path
        if self.attach_hook is not None:
            self.attach_hook(path)

    def add_path(self, name: Optional[str] = None, select: bool = False) -> Path:
        path = Path(
            name=self.unique_name(name or self.default_name),
            default_control_interval_count=self.default_control_interval_count,
        )
        self._attach(path)
        if select or not self.active_path_uuid:
            self.active_path_uuid = path.uuid
        self.changed.emit()
        return path

    def set_active_path(self, uuid: str) -> None:
        if uuid not in self.paths:
            raise KeyError(f"Unknown path uuid {uuid}")
        self.active_path_uuid = uuid
        self.changed.emit()

    def delete_path(self, uuid: str) -> None:
        if uuid not in self.paths:
            return
        uuids = self.path_uuids
        index = uuids.index(uuid)
        del self.paths[uuid]
        if not self.paths:
            self.active_path_uuid = ""
            self.add_path(self.default_name, select=True)
            return
        if self.active_path_uuid == uuid:
            remaining = self.path_uuids
            self.active_path_uuid = remaining[max(0, index - 1)]
        self.changed.emit()

    def reorder_paths(self, start_index: int, end_index: int) -> None:
        items = list(self.paths.items())
        n = len(items)
        if not (0 <= start_index < n and 0 <= end_index < n):
            raise IndexError(f"cannot move path {start_index} to {end_index} in a list of {n}")
        item = items.pop(start_index)
        items.insert(end_index, item)
        self.paths = dict(items)
        self.changed.emit()

    # ---------- serialization ----------
    def as_saved_paths(self) -> Dict[str, Any]:
        return {p.name: p.as_saved_path() for p in self.paths.values()}

    def from_saved_paths(self, saved: Dict[str, Any]) -> None:
        self.paths = {}
        self.active_path_uuid = ""
        for name, saved_path in saved.items():
            path = self.add_path(str(name))
            path.from_saved_path(saved_path)
        if not self.paths:
            self.add_path(self.default_name, select=True)
        self.changed.emit()

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "paths": [p.to_snapshot() for p in self.paths.values()],
            "active": self.active_path_uuid,
        }

    def apply_snapshot(self, snap: Dict[str, Any]) -> None:
        """Restore editable state; surviving paths keep their cached results."""
        previous = self.paths
        self.paths = {}
        for raw in snap["paths"]:
            path = Path.from_snapshot(raw)
            old = previous.get(path.uuid)
            if old is not None:
                path.generated = old.generated
                path.generating = old.generating
                path.changed = old.changed
            self._attach(path)
        self.active_path_uuid = snap["active"] if snap["active"] in self.paths else next(iter(self.paths))
        self.changed.emit()
