# -*- coding: utf-8 -*-
"""Persisted document format: recognized versions, validation and upgrade.

Layout (current version)::

    {
      "version": "v0.2",
      "robotConfiguration": {"mass": ..., "wheelRadius": ..., ...},
      "paths": {
        "<name>": {
          "waypoints": [{"x", "y", "heading", "isInitialGuess",
                         "translationConstrained", "headingConstrained",
                         "controlIntervalCount"}, ...],
          "constraints": [{"type": "MaxVelocity", "scope": [0, "last"],
                           "velocity": 2.0}, ...],
          "trajectory": [sample, ...] | null,
          "usesControlIntervalGuessing": true,
          "defaultControlIntervalCount": 40
        }
      }
    }

``v0.1`` documents stored motor data (``motorMaxVelocity`` in RPM,
``motorMaxTorque``, ``gearing``) instead of wheel limits and had no planner
settings; :func:`upgrade` converts them.
"""

from __future__ import annotations

import copy
import math
from numbers import Real
from typing import Any, Dict

from .errors import DocumentFormatError

SAVE_FILE_VERSION = "v0.2"
VERSIONS = ("v0.1", "v0.1.1", "v0.1.2", SAVE_FILE_VERSION)
_MOTOR_VERSIONS = ("v0.1", "v0.1.1", "v0.1.2")


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_count(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value) and value >= 1 and float(value) == int(value)


def _check_path(name: str, path: Any) -> None:
    if not isinstance(path, dict):
        raise DocumentFormatError(f"Path {name!r} is not an object")
    waypoints = path.get("waypoints")
    if not isinstance(waypoints, list):
        raise DocumentFormatError(f"Path {name!r} has no waypoint list")
    for i, wpt in enumerate(waypoints):
        if not isinstance(wpt, dict):
            raise DocumentFormatError(f"Path {name!r} waypoint {i} is not an object")
        for key in ("x", "y", "heading"):
            if not _is_number(wpt.get(key)):
                raise DocumentFormatError(f"Path {name!r} waypoint {i} has no numeric {key!r}")
        if "controlIntervalCount" in wpt and not _is_count(wpt["controlIntervalCount"]):
            raise DocumentFormatError(f"Path {name!r} waypoint {i} control interval count must be a positive integer")
    if "defaultControlIntervalCount" in path and not _is_count(path["defaultControlIntervalCount"]):
        raise DocumentFormatError(f"Path {name!r} defaultControlIntervalCount must be a positive integer")
    constraints = path.get("constraints", [])
    if not isinstance(constraints, list):
        raise DocumentFormatError(f"Path {name!r} constraints must be a list")
    for i, con in enumerate(constraints):
        if not isinstance(con, dict) or not isinstance(con.get("type"), str):
            raise DocumentFormatError(f"Path {name!r} constraint {i} has no type")
        scope = con.get("scope")
        if not isinstance(scope, list):
            raise DocumentFormatError(f"Path {name!r} constraint {i} has no scope list")
        for sid in scope:
            if sid in ("first", "last"):
                continue
            if not (isinstance(sid, int) and not isinstance(sid, bool)):
                raise DocumentFormatError(f"Path {name!r} constraint {i} has invalid scope entry {sid!r}")
    trajectory = path.get("trajectory")
    if trajectory is not None and not isinstance(trajectory, list):
        raise DocumentFormatError(f"Path {name!r} trajectory must be a list or null")


def validate(data: Any) -> None:
    """Raise :class:`DocumentFormatError` unless ``data`` is a recognized document."""
    if not isinstance(data, dict):
        raise DocumentFormatError("Document is not a JSON object")
    version = data.get("version")
    if version not in VERSIONS:
        raise DocumentFormatError(f"Unrecognized document version {version!r}")
    robot = data.get("robotConfiguration")
    if not isinstance(robot, dict):
        raise DocumentFormatError("Document has no robotConfiguration object")
    for key, value in robot.items():
        if key != "identifier" and not _is_number(value):
            raise DocumentFormatError(f"robotConfiguration.{key} must be a number")
    paths = data.get("paths")
    if not isinstance(paths, dict):
        raise DocumentFormatError("Document has no paths object")
    for name, path in paths.items():
        _check_path(name, path)


def is_valid(data: Any) -> bool:
    try:
        validate(data)
    except DocumentFormatError:
        return False
    return True


def upgrade(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``data`` and return a copy in the current format."""
    validate(data)
    out = copy.deepcopy(data)
    version = out["version"]
    if version in _MOTOR_VERSIONS:
        robot = out["robotConfiguration"]
        gearing = float(robot.pop("gearing", 6.75))
        rpm = robot.pop("motorMaxVelocity", None)
        torque = robot.pop("motorMaxTorque", None)
        if gearing == 0:
            raise DocumentFormatError("robotConfiguration.gearing may not be 0")
        if rpm is not None:
            robot.setdefault("wheelMaxVelocity", float(rpm) * 2.0 * math.pi / 60.0 / gearing)
        if torque is not None:
            robot.setdefault("wheelMaxTorque", float(torque) * gearing)
        for path in out["paths"].values():
            path.setdefault("usesControlIntervalGuessing", True)
            path.setdefault("defaultControlIntervalCount", 40)
            path.setdefault("constraints", [])
            path.setdefault("trajectory", None)
    out["version"] = SAVE_FILE_VERSION
    return out
