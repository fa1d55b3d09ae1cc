# -*- coding: utf-8 -*-
"""Waypoint: a pose plus planning flags, owned by one path."""

from __future__ import annotations

import uuid as _uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict


class WaypointType(IntEnum):
    FULL = 0
    TRANSLATION = 1
    EMPTY = 2
    INITIAL_GUESS = 3


def new_uuid() -> str:
    return str(_uuid.uuid4())


@dataclass
class Waypoint:
    uuid: str = field(default_factory=new_uuid)
    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0
    heading_constrained: bool = True
    translation_constrained: bool = True
    is_initial_guess: bool = False
    control_interval_count: int = 40
    selected: bool = False

    @property
    def type(self) -> WaypointType:
        if self.is_initial_guess:
            return WaypointType.INITIAL_GUESS
        if self.heading_constrained:
            return WaypointType.FULL
        if self.translation_constrained:
            return WaypointType.TRANSLATION
        return WaypointType.EMPTY

    def set_type(self, typ: int) -> None:
        typ = WaypointType(int(typ))
        self.is_initial_guess = typ is WaypointType.INITIAL_GUESS
        self.heading_constrained = typ in (WaypointType.FULL, WaypointType.INITIAL_GUESS)
        self.translation_constrained = typ is not WaypointType.EMPTY

    def set_control_interval_count(self, count: int) -> None:
        count = int(count)
        if count < 1:
            raise ValueError(f"Control interval count must be positive, got {count}")
        self.control_interval_count = count

    def as_saved_waypoint(self) -> Dict[str, Any]:
        return {
            "x": float(self.x),
            "y": float(self.y),
            "heading": float(self.heading),
            "isInitialGuess": bool(self.is_initial_guess),
            "translationConstrained": bool(self.translation_constrained),
            "headingConstrained": bool(self.heading_constrained),
            "controlIntervalCount": int(self.control_interval_count),
        }

    def from_saved_waypoint(self, data: Dict[str, Any]) -> None:
        self.x = float(data.get("x", 0.0))
        self.y = float(data.get("y", 0.0))
        self.heading = float(data.get("heading", 0.0))
        self.is_initial_guess = bool(data.get("isInitialGuess", False))
        self.translation_constrained = bool(data.get("translationConstrained", True))
        self.heading_constrained = bool(data.get("headingConstrained", True))
        try:
            self.set_control_interval_count(int(data.get("controlIntervalCount", self.control_interval_count)))
        except (TypeError, ValueError):
            pass
