import pytest
from pydantic import ValidationError

from trajedit.utils.config import EditorSettings


def test_defaults():
    settings = EditorSettings()
    assert settings.nominal_step_seconds == 0.1
    assert settings.default_control_interval_count == 40
    assert settings.trajectory_extension == ".traj"


def test_env_override(monkeypatch):
    monkeypatch.setenv("TRAJEDIT_DEFAULT_CONTROL_INTERVAL_COUNT", "25")
    assert EditorSettings().default_control_interval_count == 25


@pytest.mark.parametrize(
    "values",
    [
        {"default_control_interval_count": 0},
        {"nominal_step_seconds": 0.0},
        {"nominal_step_seconds": -0.1},
    ],
)
def test_planner_settings_are_bounded(values):
    with pytest.raises(ValidationError):
        EditorSettings(**values)
