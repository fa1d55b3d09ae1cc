import asyncio
import json
import os

import pytest

from trajedit.core import generation
from trajedit.core.generation import DocumentManager
from trajedit.core.robot_config import RobotConfig
from trajedit.core.errors import SolverError
from trajedit.utils.config import EditorSettings

SAMPLES = [
    {"x": 0.0, "y": 0.0, "heading": 0.0, "timestamp": 0.0},
    {"x": 1.0, "y": 0.0, "heading": 0.0, "timestamp": 1.0},
]


class FakeSolver:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.gate = None

    async def generate(self, path_uuid, path, robot_config):
        self.calls.append((path_uuid, path, robot_config))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SolverError("infeasible")
        return [dict(s) for s in SAMPLES]


class FakeFS:
    def __init__(self, fail_names=(), gradle_dirs=()):
        self.files = {}
        self.dirs = set()
        self.fail_names = set(fail_names)
        self.gradle_dirs = set(gradle_dirs)

    async def write_file(self, dir, name, contents):
        if name in self.fail_names:
            raise OSError(f"disk full: {name}")
        self.files[os.path.join(dir, name)] = contents

    async def read_file(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def exists(self, path):
        return path in self.dirs

    async def create_dir(self, dir):
        self.dirs.add(dir)

    async def contains_build_gradle(self, dir):
        return dir in self.gradle_dirs


class FakeDialogs:
    def __init__(self, answer=None, yes=False):
        self.answer = answer
        self.yes = yes

    async def ask_yes_no(self, prompt):
        return self.yes

    async def choose_save_location(self, title, default_path, filters):
        return self.answer


@pytest.fixture
def settings():
    return EditorSettings(autosave=False)


def make_manager(settings, solver=None, fs=None, dialogs=None):
    manager = DocumentManager(solver or FakeSolver(), fs or FakeFS(), dialogs or FakeDialogs(), settings=settings)
    manager.document.robot_config = RobotConfig(
        mass=4.0, wheel_radius=1.0, wheel_max_velocity=2.0, wheel_max_torque=1.0
    )
    return manager


def add_points(manager, uuid=None, n=2):
    for i in range(n):
        manager.document.cmd_add_waypoint(10.0 * i, 0.0, path_uuid=uuid)


@pytest.mark.asyncio
async def test_generate_caches_result(settings):
    solver = FakeSolver()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    path = manager.document.pathlist.active_path
    idx = manager.history.undo_idx

    ok, msg = await manager.generate_path(path.uuid)

    assert ok, msg
    assert path.generated == SAMPLES
    assert not path.generating
    assert manager.history.undo_idx == idx
    _, sent, robot = solver.calls[0]
    assert [w["controlIntervalCount"] for w in sent["waypoints"]] == [70, 40]
    assert robot["mass"] == 4.0


@pytest.mark.asyncio
async def test_zero_torque_aborts_before_solver(settings):
    solver = FakeSolver()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    path = manager.document.pathlist.active_path
    path.set_trajectory(SAMPLES)
    manager.document.robot_config = manager.document.robot_config.with_values(wheel_max_torque=0.0)

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert msg == "Wheel max torque may not be 0"
    assert not path.generating
    assert path.generated == SAMPLES
    assert solver.calls == []


@pytest.mark.asyncio
async def test_solver_failure_keeps_previous_result(settings):
    manager = make_manager(settings, solver=FakeSolver(fail=True))
    add_points(manager)
    path = manager.document.pathlist.active_path
    old = [{"x": 5.0, "y": 5.0, "heading": 0.0, "timestamp": 0.0}] * 2
    path.set_trajectory(old)

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert "infeasible" in msg
    assert not path.generating
    assert path.generated == old


@pytest.mark.asyncio
async def test_needs_two_waypoints(settings):
    manager = make_manager(settings)
    add_points(manager, n=1)
    ok, _ = await manager.generate_path(manager.document.pathlist.active_path_uuid)
    assert not ok


@pytest.mark.asyncio
async def test_second_request_while_generating_is_refused(settings):
    solver = FakeSolver()
    solver.gate = asyncio.Event()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    uuid = manager.document.pathlist.active_path_uuid

    first = asyncio.ensure_future(manager.generate_path(uuid))
    await asyncio.sleep(0)
    assert manager.document.pathlist.active_path.generating
    ok, msg = await manager.generate_path(uuid)
    assert not ok and "already generating" in msg

    solver.gate.set()
    assert (await first)[0]
    assert len(solver.calls) == 1


@pytest.mark.asyncio
async def test_user_edit_during_generation(settings):
    solver = FakeSolver()
    solver.gate = asyncio.Event()
    manager = make_manager(settings, solver=solver)
    add_points(manager, n=3)
    uuid = manager.document.pathlist.active_path_uuid

    task = asyncio.ensure_future(manager.generate_path(uuid))
    await asyncio.sleep(0)
    manager.document.cmd_delete_waypoint(manager.document.pathlist.active_path.waypoints[1].uuid)
    manager.undo()
    assert manager.document.pathlist.active_path.generating
    solver.gate.set()
    ok, _ = await task

    path = manager.document.pathlist.get(uuid)
    assert ok
    assert len(solver.calls[0][1]["waypoints"]) == 3
    assert path.generated == SAMPLES
    assert not path.generating


@pytest.mark.asyncio
async def test_result_for_deleted_path_is_dropped(settings):
    solver = FakeSolver()
    solver.gate = asyncio.Event()
    manager = make_manager(settings, solver=solver)
    doomed = manager.document.cmd_add_path("Doomed")
    add_points(manager, uuid=doomed.uuid)

    task = asyncio.ensure_future(manager.generate_path(doomed.uuid))
    await asyncio.sleep(0)
    manager.document.cmd_delete_path(doomed.uuid)
    solver.gate.set()
    ok, msg = await task

    assert ok
    assert "removed" in msg
    assert manager.document.pathlist.get(doomed.uuid) is None


@pytest.mark.asyncio
async def test_export_all_isolates_failures(settings):
    fs = FakeFS(fail_names={"B.traj"})
    manager = make_manager(settings, fs=fs)
    doc = manager.document
    doc.cmd_rename_path(doc.pathlist.active_path_uuid, "A")
    doc.cmd_add_path("B")
    doc.cmd_add_path("C")
    for path in doc.pathlist.paths.values():
        path.set_trajectory(SAMPLES)
    manager.save_file_dir = "/proj"

    results = await manager.export_all_trajectories()

    assert results["A"][0] and results["C"][0]
    assert not results["B"][0]
    assert "disk full" in results["B"][1]
    assert set(fs.files) == {"/proj/A.traj", "/proj/C.traj"}
    assert json.loads(fs.files["/proj/A.traj"]) == {"samples": SAMPLES}


@pytest.mark.asyncio
async def test_export_all_unsaved_project_reports_every_path(settings):
    manager = make_manager(settings)
    manager.document.cmd_add_path("Other")
    for path in manager.document.pathlist.paths.values():
        path.set_trajectory(SAMPLES)
    results = await manager.export_all_trajectories()
    assert set(results) == {"NewPath", "Other"}
    assert all(not ok for ok, _ in results.values())
    assert all("not been saved" in msg for _, msg in results.values())


@pytest.mark.asyncio
async def test_generate_with_export_writes_robot_project_dir(settings):
    fs = FakeFS()
    manager = make_manager(settings, fs=fs)
    add_points(manager)
    manager.save_file_dir = "/proj"
    manager.is_robot_project = True

    ok, _ = await manager.generate_with_export(manager.document.pathlist.active_path_uuid)

    traj_dir = os.path.join("/proj", settings.robot_project_traj_dir)
    assert ok
    assert traj_dir in fs.dirs
    assert os.path.join(traj_dir, "NewPath.traj") in fs.files


@pytest.mark.asyncio
async def test_export_failure_keeps_generation(settings):
    fs = FakeFS(fail_names={"NewPath.traj"})
    manager = make_manager(settings, fs=fs)
    add_points(manager)
    manager.save_file_dir = "/proj"

    ok, msg = await manager.generate_active()

    assert not ok
    assert msg.startswith("Couldn't export trajectory")
    assert manager.document.pathlist.active_path.generated == SAMPLES


@pytest.mark.asyncio
async def test_export_trajectory_dialog(settings):
    fs = FakeFS()
    manager = make_manager(settings, fs=fs, dialogs=FakeDialogs(answer="/out/custom.traj"))
    manager.save_file_dir = "/proj"
    manager.document.pathlist.active_path.set_trajectory(SAMPLES)

    ok, _ = await manager.export_active_trajectory()

    assert ok
    assert "/out/custom.traj" in fs.files


@pytest.mark.asyncio
async def test_export_trajectory_cancelled(settings):
    fs = FakeFS()
    manager = make_manager(settings, fs=fs, dialogs=FakeDialogs(answer=None))
    manager.save_file_dir = "/proj"
    manager.document.pathlist.active_path.set_trajectory(SAMPLES)

    ok, msg = await manager.export_active_trajectory()

    assert not ok and msg == "Cancelled"
    assert fs.files == {}


@pytest.mark.asyncio
async def test_save_open_roundtrip(settings):
    fs = FakeFS(gradle_dirs={"/proj"})
    manager = make_manager(settings, fs=fs)
    add_points(manager)
    manager.document.pathlist.active_path.set_trajectory(SAMPLES)

    ok, _ = await manager.save_file_as("/proj", "doc.chor")
    assert ok
    assert manager.is_robot_project
    # Project type changed on save, so trajectories were exported.
    assert os.path.join("/proj", settings.robot_project_traj_dir, "NewPath.traj") in fs.files

    other = make_manager(settings, fs=fs)
    ok, _ = await other.open_file("/proj/doc.chor")
    assert ok
    assert other.save_file_name == "doc.chor"
    assert other.is_robot_project
    assert len(other.document.pathlist.active_path.waypoints) == 2

    other.document.pathlist.active_path.set_trajectory([])
    ok, _ = await other.load_trajectory(other.document.pathlist.active_path_uuid)
    assert ok
    assert other.document.pathlist.active_path.generated == SAMPLES


@pytest.mark.asyncio
async def test_open_invalid_contents_keeps_document(settings):
    manager = make_manager(settings)
    add_points(manager)
    before = manager.document.snapshot_model()
    ok, msg = await manager.open_from_contents("{not json")
    assert not ok
    ok, msg = await manager.open_from_contents(json.dumps({"version": "bogus"}))
    assert not ok
    assert "Could not parse" in msg
    assert manager.document.snapshot_model() == before


@pytest.mark.asyncio
async def test_save_without_location_uses_dialog(settings):
    fs = FakeFS()
    manager = make_manager(settings, fs=fs, dialogs=FakeDialogs(answer=None))
    ok, msg = await manager.save_file()
    assert not ok and msg == "Cancelled"

    manager.dialogs = FakeDialogs(answer="/docs/a.chor")
    ok, _ = await manager.save_file()
    assert ok
    assert "/docs/a.chor" in fs.files
    assert (manager.save_file_dir, manager.save_file_name) == ("/docs", "a.chor")


@pytest.mark.asyncio
async def test_autosave_on_edit():
    fs = FakeFS()
    manager = make_manager(EditorSettings(autosave=True), fs=fs)
    manager.save_file_dir, manager.save_file_name = "/docs", "a.chor"
    manager.document.cmd_add_waypoint(1.0, 1.0)
    await asyncio.sleep(0.05)
    saved = json.loads(fs.files["/docs/a.chor"])
    assert len(saved["paths"]["NewPath"]["waypoints"]) == 1


@pytest.mark.asyncio
async def test_request_close_offers_save(settings):
    fs = FakeFS()
    manager = make_manager(settings, fs=fs, dialogs=FakeDialogs(answer="/docs/b.chor", yes=True))
    assert await manager.request_close()
    assert "/docs/b.chor" in fs.files


@pytest.mark.asyncio
async def test_new_file_resets_location(settings):
    manager = make_manager(settings)
    manager.save_file_dir, manager.save_file_name = "/docs", "a.chor"
    manager.is_robot_project = True
    manager.new_file()
    assert manager.save_file_name is None
    assert not manager.is_robot_project
    assert manager.document.pathlist.path_names == ["NewPath"]


@pytest.mark.asyncio
@pytest.mark.parametrize("guessing", [True, False])
async def test_bad_default_count_clears_generating(settings, guessing):
    solver = FakeSolver()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    path = manager.document.pathlist.active_path
    path.set_control_interval_guessing(guessing)
    # Bypasses the setter's bounds check.
    path.default_control_interval_count = 0
    before = [w.control_interval_count for w in path.waypoints]

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert msg == "Default control interval count must be positive, got 0"
    assert [w.control_interval_count for w in path.waypoints] == before
    assert not path.generating
    assert solver.calls == []

    path.set_default_control_interval_count(40)
    ok, _ = await manager.generate_path(path.uuid)
    assert ok
    assert path.generated == SAMPLES


@pytest.mark.asyncio
async def test_non_finite_waypoint_aborts_before_solver(settings):
    solver = FakeSolver()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    path = manager.document.pathlist.active_path
    path.waypoints[1].x = float("inf")

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert msg == "Waypoint coordinates must be finite"
    assert not path.generating
    assert solver.calls == []


@pytest.mark.asyncio
async def test_planner_exception_clears_generating(settings, monkeypatch):
    def explode(path, robot_config, step):
        raise RuntimeError("boom")

    monkeypatch.setattr(generation, "optimize_control_interval_counts", explode)
    solver = FakeSolver()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    path = manager.document.pathlist.active_path

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert msg == "Control interval planning failed for NewPath: boom"
    assert not path.generating
    assert solver.calls == []


@pytest.mark.asyncio
async def test_open_rejects_non_positive_default_count(settings):
    manager = make_manager(settings)
    add_points(manager)
    before = manager.document.snapshot_model()
    doc = {
        "version": "v0.2",
        "robotConfiguration": {},
        "paths": {
            "P": {
                "waypoints": [{"x": 0.0, "y": 0.0, "heading": 0.0}, {"x": 1.0, "y": 0.0, "heading": 0.0}],
                "defaultControlIntervalCount": 0,
            }
        },
    }

    ok, msg = await manager.open_from_contents(json.dumps(doc))

    assert not ok
    assert "defaultControlIntervalCount" in msg
    assert manager.document.snapshot_model() == before


@pytest.mark.asyncio
async def test_negative_mass_aborts_before_solver(settings):
    solver = FakeSolver()
    manager = make_manager(settings, solver=solver)
    add_points(manager)
    path = manager.document.pathlist.active_path
    manager.document.robot_config = manager.document.robot_config.with_values(mass=-4.0)

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert msg == "Robot mass must be positive"
    assert not path.generating
    assert solver.calls == []


@pytest.mark.asyncio
async def test_malformed_solver_samples_clear_generating(settings):
    class BadSolver(FakeSolver):
        async def generate(self, path_uuid, path, robot_config):
            self.calls.append(path_uuid)
            return [1.0, 2.0]

    manager = make_manager(settings, solver=BadSolver())
    add_points(manager)
    path = manager.document.pathlist.active_path

    ok, msg = await manager.generate_path(path.uuid)

    assert not ok
    assert "Generation failed" in msg
    assert not path.generating
    assert path.generated == []


@pytest.mark.asyncio
async def test_delete_and_undo_during_generation_keeps_one_solve(settings):
    solver = FakeSolver()
    solver.gate = asyncio.Event()
    manager = make_manager(settings, solver=solver)
    b = manager.document.cmd_add_path("B")
    add_points(manager, uuid=b.uuid)

    first = asyncio.ensure_future(manager.generate_path(b.uuid))
    await asyncio.sleep(0)
    manager.document.cmd_delete_path(b.uuid)
    manager.undo()
    assert manager.document.pathlist.get(b.uuid) is not None

    ok, msg = await manager.generate_path(b.uuid)
    assert not ok and "already generating" in msg

    solver.gate.set()
    assert await first == (True, "Generated B")
    assert len(solver.calls) == 1
    assert manager.document.pathlist.get(b.uuid).generated == SAMPLES

    # Once settled the path can be generated again.
    solver.gate = None
    ok, _ = await manager.generate_path(b.uuid)
    assert ok
    assert len(solver.calls) == 2


class SlowFS(FakeFS):
    def __init__(self, **kw):
        super().__init__(**kw)
        self.read_gate = asyncio.Event()

    async def read_file(self, path):
        await self.read_gate.wait()
        return await super().read_file(path)


async def saved_robot_project(fs, settings, name="Gone"):
    manager = make_manager(settings, fs=fs)
    manager.save_file_dir, manager.save_file_name = "/proj", "doc.chor"
    manager.is_robot_project = True
    path = manager.document.cmd_add_path(name)
    add_points(manager, uuid=path.uuid)
    path.set_trajectory(SAMPLES)
    assert await manager.write_trajectory(lambda: manager.get_traj_file_path(path.uuid), path.uuid)
    return manager, path


@pytest.mark.asyncio
async def test_load_trajectory_for_removed_path(settings):
    fs = SlowFS()
    manager, path = await saved_robot_project(fs, settings)

    task = asyncio.ensure_future(manager.load_trajectory(path.uuid))
    await asyncio.sleep(0)
    manager.document.cmd_delete_path(path.uuid)
    fs.read_gate.set()
    ok, msg = await task

    assert ok
    assert msg == "Gone was removed before its trajectory loaded"
    assert manager.document.pathlist.get(path.uuid) is None


@pytest.mark.asyncio
async def test_load_trajectory_rejects_non_mapping_samples(settings):
    fs = FakeFS()
    manager, path = await saved_robot_project(fs, settings)
    directory, name = manager.get_traj_file_path(path.uuid)
    fs.files[os.path.join(directory, name)] = json.dumps({"samples": [1, 2]})
    path.set_trajectory([])

    ok, msg = await manager.load_trajectory(path.uuid)

    assert not ok
    assert msg == "Trajectory file has no sample list"
    assert path.generated == []
