# -*- coding: utf-8 -*-
"""Editor-wide settings (env prefix ``TRAJEDIT_``)."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EditorSettings(BaseSettings):
    # Planner time step, seconds per control interval.
    nominal_step_seconds: float = Field(default=0.1, gt=0.0)
    default_control_interval_count: int = Field(default=40, ge=1)
    robot_project_traj_dir: str = "src/main/deploy/choreo"
    trajectory_extension: str = ".traj"
    document_extension: str = ".chor"
    default_path_name: str = "NewPath"
    log_level: str = "INFO"
    autosave: bool = True

    model_config = SettingsConfigDict(
        env_prefix="TRAJEDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> EditorSettings:
    return EditorSettings()
