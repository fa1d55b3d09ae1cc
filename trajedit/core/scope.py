# -*- coding: utf-8 -*-
"""Waypoint references and scope resolution.

A constraint scope holds one or two references. A reference is either a
concrete waypoint uuid (:class:`WaypointRef`) or one of the symbolic anchors
:data:`Anchor.FIRST` / :data:`Anchor.LAST`, which follow whatever waypoint
currently sits at the start or the end of the path. References are never
stored as indices: indices drift when waypoints are reordered.

Saved documents use indices (``0``, ``1``, ...) and the strings ``"first"`` /
``"last"``; :func:`to_saved_id` and :func:`from_saved_id` convert between the
two worlds.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

if TYPE_CHECKING:
    from .waypoint import Waypoint


class Anchor(str, Enum):
    FIRST = "first"
    LAST = "last"


@dataclass(frozen=True)
class WaypointRef:
    uuid: str


ScopeRef = Union[WaypointRef, Anchor]
SavedWaypointId = Union[int, str]


def find_uuid_index(uuid: str, waypoints: Sequence["Waypoint"]) -> int:
    for idx, wpt in enumerate(waypoints):
        if wpt.uuid == uuid:
            return idx
    return -1


def resolve(ref: ScopeRef, waypoints: Sequence["Waypoint"]) -> Optional[int]:
    """Return the current index of ``ref`` or ``None`` if it does not resolve."""
    if isinstance(ref, Anchor):
        if not waypoints:
            return None
        return 0 if ref is Anchor.FIRST else len(waypoints) - 1
    idx = find_uuid_index(ref.uuid, waypoints)
    return idx if idx >= 0 else None


def to_ref(index: int, waypoints: Sequence["Waypoint"]) -> WaypointRef:
    if index < 0 or index >= len(waypoints):
        raise IndexError(f"waypoint index {index} out of range (0..{len(waypoints) - 1})")
    return WaypointRef(waypoints[index].uuid)


def to_saved_id(ref: ScopeRef, waypoints: Sequence["Waypoint"]) -> Optional[SavedWaypointId]:
    """Anchors stay symbolic; concrete references become fresh indices."""
    if isinstance(ref, Anchor):
        return ref.value
    return resolve(ref, waypoints)


def from_saved_id(saved: SavedWaypointId, waypoints: Sequence["Waypoint"]) -> ScopeRef:
    if isinstance(saved, str):
        try:
            return Anchor(saved)
        except ValueError:
            raise ValueError(f"Unknown scope anchor: {saved!r}") from None
    if isinstance(saved, bool) or not isinstance(saved, int):
        raise ValueError(f"Invalid scope entry: {saved!r}")
    return to_ref(saved, waypoints)


def saved_scope(scope: Sequence[ScopeRef], waypoints: Sequence["Waypoint"]) -> Optional[List[SavedWaypointId]]:
    """Saved form of a whole scope, or ``None`` if any entry no longer resolves."""
    out: List[SavedWaypointId] = []
    for ref in scope:
        saved = to_saved_id(ref, waypoints)
        if saved is None:
            return None
        out.append(saved)
    return out


def solver_scope(saved: Sequence[SavedWaypointId], n_waypoints: int) -> List[int]:
    """Replace anchors with indices and sort ascending."""
    out: List[int] = []
    for sid in saved:
        if sid == Anchor.FIRST.value:
            out.append(0)
        elif sid == Anchor.LAST.value:
            out.append(n_waypoints - 1)
        else:
            out.append(int(sid))
    return sorted(out)
