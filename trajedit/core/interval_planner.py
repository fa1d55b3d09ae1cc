# -*- coding: utf-8 -*-
"""Control-interval planning.

The solver discretizes every segment into a number of control intervals.
Too few intervals give a poor trajectory, too many make the solve slow, so
the count is estimated from a minimum-time motion profile:

- ``max_accel = 4 * (wheel_max_torque / wheel_radius) / mass``
- ``max_vel = wheel_max_velocity * wheel_radius``
- if ``d - max_vel**2 / max_accel < 0`` the robot never reaches cruise speed
  (triangle profile, ``t = 2 * sqrt(d / max_accel)``), otherwise it cruises
  (trapezoid profile, ``t = d / max_vel + max_vel / max_accel``)
- ``count = ceil(t / step)`` with a nominal step of 0.1 s.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple

import numpy as np

from ..utils.logging_config import setup_logger
from .robot_config import RobotConfig
from .waypoint import Waypoint

if TYPE_CHECKING:
    from .path import Path

logger = setup_logger()

NOMINAL_STEP_SECONDS = 0.1


def segment_times(points: np.ndarray, max_vel: float, max_accel: float) -> np.ndarray:
    """Minimum profile time for each consecutive pair of ``points`` (shape (n, 2))."""
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(points) < 2:
        return np.zeros(0)
    deltas = np.diff(points, axis=0)
    dist = np.hypot(deltas[:, 0], deltas[:, 1])
    cruise = dist - (max_vel * max_vel) / max_accel
    triangle = 2.0 * np.sqrt(dist / max_accel)
    trapezoid = dist / max_vel + max_vel / max_accel
    return np.where(cruise < 0, triangle, trapezoid)


def segment_interval_counts(
    points: np.ndarray,
    max_vel: float,
    max_accel: float,
    step: float = NOMINAL_STEP_SECONDS,
) -> np.ndarray:
    times = segment_times(points, max_vel, max_accel)
    # A zero-length segment still needs one interval.
    return np.maximum(np.ceil(times / step), 1).astype(int)


def _real_points(path: "Path") -> Sequence[Waypoint]:
    return path.non_guess_or_empty_points


def _check_default_count(path: "Path") -> Tuple[bool, str]:
    count = path.default_control_interval_count
    if not count >= 1:
        return False, f"Default control interval count must be positive, got {count}"
    return True, ""


def default_control_interval_counts(path: "Path") -> Tuple[bool, str]:
    ok, msg = _check_default_count(path)
    if not ok:
        return False, msg
    for wpt in _real_points(path):
        wpt.set_control_interval_count(path.default_control_interval_count)
    return True, ""


def guess_control_interval_counts(
    path: "Path",
    robot_config: RobotConfig,
    step: float = NOMINAL_STEP_SECONDS,
) -> Tuple[bool, str]:
    ok, msg = robot_config.validate_for_planning()
    if not ok:
        return False, msg
    ok, msg = _check_default_count(path)
    if not ok:
        return False, msg
    real = list(_real_points(path))
    if not real:
        return True, ""
    points = np.array([[w.x, w.y] for w in real], dtype=float)
    if not np.all(np.isfinite(points)):
        return False, "Waypoint coordinates must be finite"
    counts = segment_interval_counts(points, robot_config.max_velocity, robot_config.max_acceleration, step)
    for wpt, count in zip(real[:-1], counts):
        wpt.set_control_interval_count(int(count))
    real[-1].set_control_interval_count(path.default_control_interval_count)
    logger.debug("guessed control intervals", path=path.name, counts=[w.control_interval_count for w in real])
    return True, ""


def optimize_control_interval_counts(
    path: "Path",
    robot_config: RobotConfig,
    step: float = NOMINAL_STEP_SECONDS,
) -> Tuple[bool, str]:
    """Stamp ``control_interval_count`` on the path's waypoints.

    Returns ``(ok, message)``; on failure nothing has been modified.
    """
    if path.uses_control_interval_guessing:
        return guess_control_interval_counts(path, robot_config, step)
    return default_control_interval_counts(path)
