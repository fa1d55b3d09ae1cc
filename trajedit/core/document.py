# -*- coding: utf-8 -*-
"""Document: robot configuration + path collection + undo history.

User edits go through the ``cmd_*`` methods (or :meth:`Document.edit`), each of
which records exactly one history entry. Solver-driven updates
(:meth:`Path.set_trajectory`, :meth:`Path.set_generating`) are not edits and
never reach the history.
"""

from __future__ import annotations

import contextlib
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

from ..utils.config import EditorSettings, get_settings
from ..utils.logging_config import setup_logger
from .commands import CommandStack
from .constraints import Constraint
from .document_format import SAVE_FILE_VERSION, upgrade
from .errors import DocumentFormatError
from .path import Path, Selectable
from .path_list import PathList
from .robot_config import RobotConfig
from .scope import ScopeRef
from .signals import Signal
from .waypoint import Waypoint

logger = setup_logger()

_WAYPOINT_FIELDS = {
    "x": float,
    "y": float,
    "heading": float,
    "heading_constrained": bool,
    "translation_constrained": bool,
    "is_initial_guess": bool,
}


class Document:
    def __init__(self, settings: Optional[EditorSettings] = None):
        self.settings = settings or get_settings()
        self.robot_config = RobotConfig()
        self.pathlist = self._new_pathlist()
        self.changed = Signal()
        self.history = CommandStack(self.snapshot_model, self.apply_model_snapshot)
        self.pathlist.add_path(select=True)
        self.history.clear()

    def _new_pathlist(self) -> PathList:
        pathlist = PathList(self.settings.default_path_name, self.settings.default_control_interval_count)
        pathlist.attach_hook = self._attach_path
        return pathlist

    def _attach_path(self, path: Path) -> None:
        path.history = getattr(self, "history", None)
        path.select_hook = self.select

    # ---------- selection ----------
    def select(self, item: Optional[Selectable]) -> None:
        for path in self.pathlist.paths.values():
            for other in [*path.waypoints, *path.constraints]:
                other.selected = False
        if item is not None:
            item.selected = True

    def selected_waypoint(self) -> Optional[Waypoint]:
        return self.pathlist.active_path.lowest_selected_point()

    # ---------- snapshots ----------
    def snapshot_model(self) -> Dict[str, Any]:
        return {
            "robotConfiguration": self.robot_config.as_saved_robot_config(),
            "pathlist": self.pathlist.to_snapshot(),
        }

    def apply_model_snapshot(self, data: Dict[str, Any]) -> None:
        self.robot_config = RobotConfig.from_saved_robot_config(data["robotConfiguration"])
        self.pathlist.apply_snapshot(data["pathlist"])
        self.changed.emit()

    # ---------- history ----------
    @contextlib.contextmanager
    def edit(self, desc: str) -> Iterator[None]:
        """Run a user edit; record it on success, roll it back on error.

        An edit that leaves the document unchanged is not recorded.
        """
        before = self.snapshot_model()
        try:
            yield
        except Exception:
            with self.history.without_undo():
                self.apply_model_snapshot(before)
            raise
        if self.snapshot_model() == before:
            return
        self.history.push(desc)
        self.changed.emit()

    def undo(self) -> None:
        if self.history.can_undo():
            self.history.undo()

    def redo(self) -> None:
        if self.history.can_redo():
            self.history.redo()

    # ---------- lookup ----------
    def _path(self, uuid: Optional[str]) -> Path:
        if uuid is None:
            return self.pathlist.active_path
        path = self.pathlist.get(uuid)
        if path is None:
            raise KeyError(f"Unknown path uuid {uuid}")
        return path

    def find_waypoint(self, uuid: str) -> Tuple[Path, Waypoint]:
        for path in self.pathlist.paths.values():
            idx = path.find_uuid_index(uuid)
            if idx >= 0:
                return path, path.waypoints[idx]
        raise KeyError(f"Unknown waypoint uuid {uuid}")

    def find_constraint(self, uuid: str) -> Tuple[Path, Constraint]:
        for path in self.pathlist.paths.values():
            for constraint in path.constraints:
                if constraint.uuid == uuid:
                    return path, constraint
        raise KeyError(f"Unknown constraint uuid {uuid}")

    # ---------- path edits ----------
    def cmd_add_path(self, name: Optional[str] = None, select: bool = True) -> Path:
        with self.edit("Add Path"):
            path = self.pathlist.add_path(name, select=select)
        return self._path(path.uuid)

    def cmd_delete_path(self, uuid: str) -> None:
        with self.edit("Delete Path"):
            self.pathlist.delete_path(uuid)

    def cmd_rename_path(self, uuid: str, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise ValueError("Path name may not be empty")
        other = self.pathlist.find_by_name(name)
        if other is not None and other.uuid != uuid:
            raise ValueError(f"A path named {name!r} already exists")
        with self.edit("Rename Path"):
            self._path(uuid).set_name(name)

    def cmd_reorder_paths(self, start_index: int, end_index: int) -> None:
        with self.edit("Reorder Paths"):
            self.pathlist.reorder_paths(start_index, end_index)

    def set_active_path(self, uuid: str) -> None:
        self.pathlist.set_active_path(uuid)
        self.changed.emit()

    def cmd_set_control_interval_guessing(self, value: bool, path_uuid: Optional[str] = None) -> None:
        with self.edit("Set Control Interval Guessing"):
            self._path(path_uuid).set_control_interval_guessing(value)

    def cmd_set_default_control_interval_count(self, count: int, path_uuid: Optional[str] = None) -> None:
        with self.edit("Set Default Control Interval Count"):
            self._path(path_uuid).set_default_control_interval_count(count)

    # ---------- waypoint edits ----------
    def cmd_add_waypoint(self, x: float = 0.0, y: float = 0.0, heading: float = 0.0,
                         path_uuid: Optional[str] = None) -> str:
        with self.edit("Add Waypoint"):
            wpt = self._path(path_uuid).add_waypoint(x, y, heading)
        return wpt.uuid

    def cmd_update_waypoint(self, uuid: str, **fields: Any) -> None:
        unknown = set(fields) - set(_WAYPOINT_FIELDS)
        if unknown:
            raise KeyError(f"Unknown waypoint field(s): {sorted(unknown)}")
        with self.edit("Edit Waypoint"):
            path, wpt = self.find_waypoint(uuid)
            for key, value in fields.items():
                setattr(wpt, key, _WAYPOINT_FIELDS[key](value))
            path.changed.emit(path)

    def cmd_set_waypoint_type(self, uuid: str, typ: int) -> None:
        with self.edit("Set Waypoint Type"):
            path, wpt = self.find_waypoint(uuid)
            wpt.set_type(typ)
            path.changed.emit(path)

    def cmd_delete_waypoint(self, uuid: str) -> None:
        with self.edit("Delete Waypoint"):
            path, _ = self.find_waypoint(uuid)
            path.delete_waypoint_uuid(uuid)

    def cmd_reorder_waypoints(self, start_index: int, end_index: int, path_uuid: Optional[str] = None) -> None:
        with self.edit("Reorder Waypoints"):
            self._path(path_uuid).reorder(start_index, end_index)

    # ---------- constraint edits ----------
    def cmd_add_constraint(self, type: str, scope: Optional[Sequence[ScopeRef]] = None,
                           path_uuid: Optional[str] = None, **params: float) -> str:
        with self.edit("Add Constraint"):
            constraint = self._path(path_uuid).add_constraint(type, scope, **params)
        return constraint.uuid

    def cmd_set_constraint_param(self, uuid: str, name: str, value: float) -> None:
        with self.edit("Edit Constraint"):
            path, constraint = self.find_constraint(uuid)
            constraint.set_param(name, value)
            path.changed.emit(path)

    def cmd_set_constraint_scope(self, uuid: str, scope: Sequence[ScopeRef]) -> None:
        with self.edit("Set Constraint Scope"):
            path, constraint = self.find_constraint(uuid)
            constraint.set_scope(scope)
            path.changed.emit(path)

    def cmd_delete_constraint(self, uuid: str) -> None:
        with self.edit("Delete Constraint"):
            path, _ = self.find_constraint(uuid)
            path.delete_constraint_uuid(uuid)

    # ---------- robot ----------
    def cmd_set_robot_config(self, **values: float) -> None:
        with self.edit("Edit Robot Configuration"):
            self.robot_config = self.robot_config.with_values(**values)

    # ---------- persistence ----------
    def as_saved_document(self) -> Dict[str, Any]:
        return {
            "version": SAVE_FILE_VERSION,
            "robotConfiguration": self.robot_config.as_saved_robot_config(),
            "paths": self.pathlist.as_saved_paths(),
        }

    def from_saved_document(self, saved: Any) -> None:
        """Replace the whole document with ``saved``.

        Raises :class:`DocumentFormatError`; on error the current document is
        left untouched.
        """
        data = upgrade(saved)
        try:
            robot_config = RobotConfig.from_saved_robot_config(data["robotConfiguration"])
            pathlist = self._new_pathlist()
            pathlist.from_saved_paths(data["paths"])
        except (KeyError, TypeError, ValueError) as exc:
            raise DocumentFormatError(f"Could not rebuild document: {exc}") from exc
        self.robot_config = robot_config
        self.pathlist = pathlist
        self.history.clear()
        self.changed.emit()
        logger.info("document loaded", paths=len(pathlist.paths))

    def new_document(self) -> None:
        self.robot_config = RobotConfig()
        self.pathlist = self._new_pathlist()
        self.pathlist.add_path(select=True)
        self.history.clear()
        self.changed.emit()
