# -*- coding: utf-8 -*-
"""Constraint types and their parameter schemas.

Every constraint type is described by one :class:`ConstraintDefinition` in
:data:`CONSTRAINT_DEFINITIONS`. The definition lists the scope sizes the type
accepts (1 = single waypoint, 2 = segment between two waypoints) and its
parameters, each with a default and a typed coercion used when a value is set
by the UI or read back from a saved document.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .scope import Anchor, ScopeRef, SavedWaypointId, from_saved_id, saved_scope
from .waypoint import Waypoint, new_uuid


def _finite_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number, got bool")
    out = float(value)
    if not math.isfinite(out):
        raise ValueError(f"expected a finite number, got {value!r}")
    return out


def _non_negative(value: Any) -> float:
    out = _finite_float(value)
    if out < 0:
        raise ValueError(f"expected a non-negative number, got {value!r}")
    return out


@dataclass(frozen=True)
class ParamSpec:
    name: str
    default: float
    coerce: Callable[[Any], float] = _finite_float
    units: str = ""


@dataclass(frozen=True)
class ConstraintDefinition:
    type: str
    title: str
    scope_sizes: Tuple[int, ...]
    params: Tuple[ParamSpec, ...] = ()

    def param(self, name: str) -> Optional[ParamSpec]:
        for spec in self.params:
            if spec.name == name:
                return spec
        return None

    def defaults(self) -> Dict[str, float]:
        return {p.name: p.default for p in self.params}


CONSTRAINT_DEFINITIONS: Dict[str, ConstraintDefinition] = {
    d.type: d
    for d in (
        ConstraintDefinition(
            "WptVelocityDirection", "Waypoint Velocity Direction", (1,),
            (ParamSpec("direction", 0.0, units="rad"),),
        ),
        ConstraintDefinition("WptZeroVelocity", "Waypoint Zero Velocity", (1,)),
        ConstraintDefinition("StopPoint", "Stop Point", (1,)),
        ConstraintDefinition(
            "MaxVelocity", "Max Velocity", (1, 2),
            (ParamSpec("velocity", 0.0, _non_negative, "m/s"),),
        ),
        ConstraintDefinition("ZeroAngularVelocity", "Zero Angular Velocity", (1, 2)),
        ConstraintDefinition("StraightLine", "Straight Line", (2,)),
        ConstraintDefinition(
            "PointAt", "Point At", (1, 2),
            (
                ParamSpec("x", 0.0, units="m"),
                ParamSpec("y", 0.0, units="m"),
                ParamSpec("tolerance", 0.0, _non_negative, "rad"),
            ),
        ),
        ConstraintDefinition(
            "HeadingAt", "Heading At", (1,),
            (ParamSpec("heading", 0.0, units="rad"),),
        ),
    )
}


def _default_scope(sizes: Tuple[int, ...]) -> List[ScopeRef]:
    if 2 in sizes and 1 not in sizes:
        return [Anchor.FIRST, Anchor.LAST]
    return [Anchor.FIRST]


@dataclass
class Constraint:
    type: str
    uuid: str = field(default_factory=new_uuid)
    scope: List[ScopeRef] = field(default_factory=list)
    params: Dict[str, float] = field(default_factory=dict)
    selected: bool = False

    def __post_init__(self) -> None:
        definition = CONSTRAINT_DEFINITIONS.get(self.type)
        if definition is None:
            raise ValueError(f"Unknown constraint type: {self.type!r}")
        if not self.scope:
            self.scope = _default_scope(definition.scope_sizes)
        self.set_scope(self.scope)
        given = dict(self.params)
        self.params = definition.defaults()
        for name, value in given.items():
            self.set_param(name, value)

    @property
    def definition(self) -> ConstraintDefinition:
        return CONSTRAINT_DEFINITIONS[self.type]

    def set_scope(self, scope: Sequence[ScopeRef]) -> None:
        scope = list(scope)
        if len(scope) not in self.definition.scope_sizes:
            raise ValueError(
                f"{self.type} accepts scopes of size {self.definition.scope_sizes}, got {len(scope)}"
            )
        self.scope = scope

    def set_param(self, name: str, value: Any) -> None:
        spec = self.definition.param(name)
        if spec is None:
            raise KeyError(f"{self.type} has no parameter {name!r}")
        self.params[name] = spec.coerce(value)

    def as_saved_constraint(self, waypoints: Sequence[Waypoint]) -> Optional[Dict[str, Any]]:
        """Saved form, or ``None`` when the scope no longer resolves."""
        scope = saved_scope(self.scope, waypoints)
        if scope is None:
            return None
        saved: Dict[str, Any] = {"type": self.type, "scope": scope}
        saved.update({k: float(v) for k, v in self.params.items()})
        return saved

    @classmethod
    def from_saved_constraint(cls, data: Dict[str, Any], waypoints: Sequence[Waypoint]) -> Optional["Constraint"]:
        """Rebuild a constraint; ``None`` for unknown types or unusable scopes."""
        definition = CONSTRAINT_DEFINITIONS.get(str(data.get("type", "")))
        if definition is None:
            return None
        raw_scope: Iterable[SavedWaypointId] = data.get("scope") or []
        try:
            scope = [from_saved_id(sid, waypoints) for sid in raw_scope]
            constraint = cls(definition.type, scope=scope)
        except (IndexError, ValueError):
            return None
        for spec in definition.params:
            if spec.name not in data:
                continue
            value = data[spec.name]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            try:
                constraint.set_param(spec.name, value)
            except (TypeError, ValueError):
                continue
        return constraint
