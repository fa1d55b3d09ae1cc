# -*- coding: utf-8 -*-
"""Robot configuration: the kinematic/physical parameters of a swerve robot."""

from __future__ import annotations

import math
import uuid as _uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Tuple

_SAVED_KEYS = {
    "mass": "mass",
    "rotational_inertia": "rotationalInertia",
    "wheel_radius": "wheelRadius",
    "wheel_max_velocity": "wheelMaxVelocity",
    "wheel_max_torque": "wheelMaxTorque",
    "bumper_width": "bumperWidth",
    "bumper_length": "bumperLength",
    "wheelbase": "wheelbase",
    "track_width": "trackWidth",
}


@dataclass(frozen=True)
class RobotConfig:
    """Units: kg, kg*m^2, m, rad/s (wheel), N*m (wheel)."""

    mass: float = 74.088
    rotational_inertia: float = 6.0
    wheel_radius: float = 0.0508
    wheel_max_velocity: float = 5676.0 * 2.0 * math.pi / 60.0 / 6.75
    wheel_max_torque: float = 1.162 * 6.75
    bumper_width: float = 0.876
    bumper_length: float = 0.876
    wheelbase: float = 0.578
    track_width: float = 0.578
    identifier: str = field(default_factory=lambda: str(_uuid.uuid4()))

    @classmethod
    def from_motor(
        cls,
        motor_max_velocity_rpm: float,
        motor_max_torque: float,
        gearing: float,
        **kwargs: Any,
    ) -> "RobotConfig":
        if gearing == 0:
            raise ValueError("Gearing may not be 0")
        return cls(
            wheel_max_velocity=motor_max_velocity_rpm * 2.0 * math.pi / 60.0 / gearing,
            wheel_max_torque=motor_max_torque * gearing,
            **kwargs,
        )

    @property
    def max_acceleration(self) -> float:
        # Four independently torqued modules.
        return 4.0 * (self.wheel_max_torque / self.wheel_radius) / self.mass

    @property
    def max_velocity(self) -> float:
        return self.wheel_max_velocity * self.wheel_radius

    def validate_for_planning(self) -> Tuple[bool, str]:
        for value, label in (
            (self.wheel_max_torque, "Wheel max torque"),
            (self.wheel_max_velocity, "Wheel max velocity"),
            (self.mass, "Robot mass"),
            (self.wheel_radius, "Wheel radius"),
        ):
            if value == 0:
                return False, f"{label} may not be 0"
            # Also catches NaN.
            if not value > 0:
                return False, f"{label} must be positive"
        return True, ""

    def with_values(self, **changes: Any) -> "RobotConfig":
        return replace(self, **changes)

    def as_saved_robot_config(self) -> Dict[str, Any]:
        values = asdict(self)
        out: Dict[str, Any] = {saved: float(values[attr]) for attr, saved in _SAVED_KEYS.items()}
        out["identifier"] = self.identifier
        return out

    @classmethod
    def from_saved_robot_config(cls, data: Dict[str, Any]) -> "RobotConfig":
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        for attr, saved in _SAVED_KEYS.items():
            value = data.get(saved, getattr(defaults, attr))
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Robot config field {saved!r} must be a number")
            kwargs[attr] = float(value)
        kwargs["identifier"] = str(data.get("identifier") or defaults.identifier)
        return cls(**kwargs)
