# -*- coding: utf-8 -*-
"""Path: ordered waypoints, constraints and the cached generated trajectory."""

from __future__ import annotations

import contextlib
import math
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

from .constraints import Constraint
from .scope import Anchor, ScopeRef, WaypointRef, find_uuid_index, resolve, solver_scope
from .signals import Signal
from .waypoint import Waypoint, WaypointType, new_uuid

Sample = Dict[str, float]
Selectable = Union[Waypoint, Constraint]

# Samples closer than this to a waypoint are considered to be on it.
_WAYPOINT_MATCH_EPS = 1e-9


class Path:
    def __init__(
        self,
        name: str = "",
        uuid: Optional[str] = None,
        uses_control_interval_guessing: bool = True,
        default_control_interval_count: int = 40,
    ):
        self.uuid = uuid or new_uuid()
        self.name = name
        self.waypoints: List[Waypoint] = []
        self.constraints: List[Constraint] = []
        self.generated: List[Sample] = []
        self.generating = False
        self.uses_control_interval_guessing = bool(uses_control_interval_guessing)
        self.default_control_interval_count = int(default_control_interval_count)
        self.changed = Signal()
        # Injected by the owning document.
        self.history: Any = None
        self.select_hook: Optional[Callable[[Optional[Selectable]], None]] = None

    # ---------- views ----------
    def find_uuid_index(self, uuid: str) -> int:
        return find_uuid_index(uuid, self.waypoints)

    @property
    def non_guess_points(self) -> List[Waypoint]:
        return [w for w in self.waypoints if not w.is_initial_guess]

    @property
    def non_guess_or_empty_points(self) -> List[Waypoint]:
        return [w for w in self.waypoints if not w.is_initial_guess and w.type is not WaypointType.EMPTY]

    def total_time_seconds(self) -> float:
        if not self.generated:
            return 0.0
        return float(self.generated[-1].get("timestamp", 0.0))

    def saved_trajectory(self) -> Optional[List[Sample]]:
        if len(self.generated) >= 2:
            return self.generated
        return None

    def can_generate(self) -> bool:
        return len(self.waypoints) >= 2 and not self.generating

    def can_export(self) -> bool:
        return len(self.generated) >= 2

    def get_by_waypoint_ref(self, ref: ScopeRef) -> Optional[Waypoint]:
        idx = resolve(ref, self.waypoints)
        return None if idx is None else self.waypoints[idx]

    def lowest_selected_point(self) -> Optional[Waypoint]:
        for wpt in self.waypoints:
            if wpt.selected:
                return wpt
        return None

    def waypoint_timestamps(self) -> List[float]:
        times: List[float] = []
        for sample in self.generated:
            sx, sy, sh = sample.get("x", math.nan), sample.get("y", math.nan), sample.get("heading", math.nan)
            for wpt in self.waypoints:
                if (
                    abs(wpt.x - sx) < _WAYPOINT_MATCH_EPS
                    and abs(wpt.y - sy) < _WAYPOINT_MATCH_EPS
                    and (not wpt.heading_constrained or abs(wpt.heading - sh) < _WAYPOINT_MATCH_EPS)
                ):
                    times.append(float(sample.get("timestamp", 0.0)))
                    break
        return times

    # ---------- serialization ----------
    def as_saved_path(self, include_trajectory: bool = True) -> Dict[str, Any]:
        """Saved form. Constraints whose scope no longer resolves are left out."""
        constraints: List[Dict[str, Any]] = []
        for constraint in self.constraints:
            saved = constraint.as_saved_constraint(self.waypoints)
            if saved is not None:
                constraints.append(saved)
        trajectory = self.saved_trajectory() if include_trajectory else None
        return {
            "waypoints": [w.as_saved_waypoint() for w in self.waypoints],
            "constraints": constraints,
            "trajectory": [dict(s) for s in trajectory] if trajectory is not None else None,
            "usesControlIntervalGuessing": bool(self.uses_control_interval_guessing),
            "defaultControlIntervalCount": int(self.default_control_interval_count),
        }

    def as_solver_path(self) -> Dict[str, Any]:
        saved = self.as_saved_path(include_trajectory=False)
        n = len(saved["waypoints"])
        for constraint in saved["constraints"]:
            constraint["scope"] = solver_scope(constraint["scope"], n)
        return saved

    def from_saved_path(self, data: Dict[str, Any]) -> None:
        """Replace waypoints, constraints and settings with ``data`` (saved form)."""
        self.waypoints = []
        for saved_wpt in data.get("waypoints") or []:
            wpt = Waypoint()
            wpt.from_saved_waypoint(saved_wpt)
            self.waypoints.append(wpt)
        self.constraints = []
        for saved_con in data.get("constraints") or []:
            constraint = Constraint.from_saved_constraint(saved_con, self.waypoints)
            if constraint is not None:
                self.constraints.append(constraint)
        trajectory = data.get("trajectory")
        self.generated = [dict(s) for s in trajectory] if trajectory else []
        self.uses_control_interval_guessing = bool(data.get("usesControlIntervalGuessing", True))
        self.set_default_control_interval_count(data.get("defaultControlIntervalCount", 40))

    def to_snapshot(self) -> Dict[str, Any]:
        """History snapshot: identities kept, solver-driven state left out."""

        def ref_to_raw(ref: ScopeRef) -> Any:
            return ref.value if isinstance(ref, Anchor) else {"uuid": ref.uuid}

        return {
            "uuid": self.uuid,
            "name": self.name,
            "waypoints": [dict(w.as_saved_waypoint(), uuid=w.uuid) for w in self.waypoints],
            "constraints": [
                {
                    "uuid": c.uuid,
                    "type": c.type,
                    "scope": [ref_to_raw(r) for r in c.scope],
                    "params": dict(c.params),
                }
                for c in self.constraints
            ],
            "usesControlIntervalGuessing": self.uses_control_interval_guessing,
            "defaultControlIntervalCount": self.default_control_interval_count,
        }

    @classmethod
    def from_snapshot(cls, snap: Dict[str, Any]) -> "Path":
        def raw_to_ref(raw: Any) -> ScopeRef:
            return Anchor(raw) if isinstance(raw, str) else WaypointRef(raw["uuid"])

        path = cls(
            name=snap["name"],
            uuid=snap["uuid"],
            uses_control_interval_guessing=snap["usesControlIntervalGuessing"],
            default_control_interval_count=snap["defaultControlIntervalCount"],
        )
        for raw in snap["waypoints"]:
            wpt = Waypoint(uuid=raw["uuid"])
            wpt.from_saved_waypoint(raw)
            path.waypoints.append(wpt)
        for raw in snap["constraints"]:
            path.constraints.append(
                Constraint(raw["type"], uuid=raw["uuid"], scope=[raw_to_ref(r) for r in raw["scope"]], params=raw["params"])
            )
        return path

    # ---------- editing ----------
    def _select(self, item: Optional[Selectable]) -> None:
        if self.select_hook is not None:
            self.select_hook(item)
            return
        for other in [*self.waypoints, *self.constraints]:
            other.selected = False
        if item is not None:
            item.selected = True

    def select_only(self, index: int) -> None:
        self._select(self.waypoints[index])

    def set_name(self, name: str) -> None:
        self.name = name
        self.changed.emit(self)

    def set_control_interval_guessing(self, value: bool) -> None:
        self.uses_control_interval_guessing = bool(value)
        self.changed.emit(self)

    def set_default_control_interval_count(self, count: int) -> None:
        count = int(count)
        if count < 1:
            raise ValueError(f"Default control interval count must be positive, got {count}")
        self.default_control_interval_count = count
        self.changed.emit(self)

    def add_waypoint(self, x: float = 0.0, y: float = 0.0, heading: float = 0.0) -> Waypoint:
        wpt = Waypoint(x=float(x), y=float(y), heading=float(heading),
                       control_interval_count=self.default_control_interval_count)
        self.waypoints.append(wpt)
        if len(self.waypoints) == 1:
            self._select(wpt)
        self.changed.emit(self)
        return wpt

    def _select_neighbor(self, items: Sequence[Selectable], index: int) -> None:
        if index - 1 >= 0:
            self._select(items[index - 1])
        elif index + 1 < len(items):
            self._select(items[index + 1])

    def delete_waypoint(self, index: int) -> None:
        if index < 0 or index >= len(self.waypoints):
            raise IndexError(f"waypoint index {index} out of range")
        self._select(None)
        if len(self.waypoints) == 1:
            self.generated = []
        else:
            self._select_neighbor(self.waypoints, index)
        del self.waypoints[index]
        self.changed.emit(self)

    def delete_waypoint_uuid(self, uuid: str) -> None:
        index = self.find_uuid_index(uuid)
        if index == -1:
            return
        self.delete_waypoint(index)

    def add_constraint(self, type: str, scope: Optional[Sequence[ScopeRef]] = None, **params: float) -> Constraint:
        constraint = Constraint(type, scope=list(scope or []), params=params)
        self.constraints.append(constraint)
        self.changed.emit(self)
        return constraint

    def delete_constraint(self, index: int) -> None:
        if index < 0 or index >= len(self.constraints):
            raise IndexError(f"constraint index {index} out of range")
        self._select(None)
        self._select_neighbor(self.constraints, index)
        del self.constraints[index]
        self.changed.emit(self)

    def delete_constraint_uuid(self, uuid: str) -> None:
        for index, constraint in enumerate(self.constraints):
            if constraint.uuid == uuid:
                self.delete_constraint(index)
                return

    def reorder(self, start_index: int, end_index: int) -> None:
        """Move one waypoint; concrete constraint references follow it."""
        n = len(self.waypoints)
        if not (0 <= start_index < n and 0 <= end_index < n):
            raise IndexError(f"cannot move waypoint {start_index} to {end_index} in a path of {n}")
        wpt = self.waypoints.pop(start_index)
        self.waypoints.insert(end_index, wpt)
        self.changed.emit(self)

    # ---------- solver-driven state (never recorded in history) ----------
    @contextlib.contextmanager
    def _without_undo(self) -> Iterator[None]:
        if self.history is None:
            yield
            return
        with self.history.without_undo():
            yield

    def set_trajectory(self, trajectory: Sequence[Sample]) -> None:
        if not all(isinstance(s, dict) for s in trajectory):
            raise TypeError("Trajectory samples must be mappings")
        with self._without_undo():
            self.generated = [dict(s) for s in trajectory]
            self.generating = False
        self.changed.emit(self)

    def set_generating(self, generating: bool) -> None:
        with self._without_undo():
            self.generating = bool(generating)
        self.changed.emit(self)

    def __repr__(self) -> str:
        return f"Path(name={self.name!r}, waypoints={len(self.waypoints)}, constraints={len(self.constraints)})"
