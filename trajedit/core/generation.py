# -*- coding: utf-8 -*-
"""Generation, export and file management for one open document.

:class:`DocumentManager` owns the :class:`Document` and drives the external
solver and file system. Every public coroutine resolves to ``(ok, message)``
(or a per-path map of those for batch export); failures from the solver or the
file bridge are logged and turned into messages, never raised.

Per-path generation state machine::

    Idle --generate_path--> Generating --solver ok--> Idle (result cached)
                                      \\--solver error/planner error--> Idle

A path that is already generating is refused, so at most one solve per path
is in flight. The manager tracks in-flight uuids itself, so a path deleted and
restored by undo mid-solve is still refused. Different paths may generate
concurrently.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from ..utils.config import EditorSettings, get_settings
from ..utils.logging_config import setup_logger
from .bridges import DialogBridge, FileSystemBridge, SolverService
from .document import Document
from .errors import DocumentFormatError, ExportError
from .interval_planner import optimize_control_interval_counts

logger = setup_logger()

Result = Tuple[bool, str]
TrajFileLocation = Tuple[str, str]
TrajFileProvider = Callable[[], Union[Optional[TrajFileLocation], Awaitable[Optional[TrajFileLocation]]]]

_CANCELLED = "Cancelled"


class DocumentManager:
    def __init__(
        self,
        solver: Optional[SolverService],
        fs: FileSystemBridge,
        dialogs: DialogBridge,
        settings: Optional[EditorSettings] = None,
        document: Optional[Document] = None,
    ):
        self.settings = settings or get_settings()
        self.document = document or Document(self.settings)
        self.solver = solver
        self.fs = fs
        self.dialogs = dialogs
        self.save_file_dir: Optional[str] = None
        self.save_file_name: Optional[str] = None
        self.is_robot_project = False
        self._autosave_task: Optional[asyncio.Task] = None
        self._autosave_again = False
        self._autosave_suspended = 0
        self._in_flight: Set[str] = set()
        self._disconnect_history = self.document.history.changed.connect(self._on_history_changed)

    def close(self) -> None:
        self._disconnect_history()

    # ---------- history ----------
    @property
    def history(self):
        return self.document.history

    def undo(self) -> None:
        self.document.undo()

    def redo(self) -> None:
        self.document.redo()

    def _on_history_changed(self) -> None:
        if not self.settings.autosave or self._autosave_suspended or self.save_file_name is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._autosave_task is not None and not self._autosave_task.done():
            self._autosave_again = True
            return
        self._autosave_task = loop.create_task(self._autosave())

    async def _autosave(self) -> None:
        while True:
            self._autosave_again = False
            ok, msg = await self.save_file()
            if not ok:
                logger.warning("autosave failed", reason=msg)
            if not self._autosave_again:
                return

    # ---------- generation ----------
    async def generate_path(self, uuid: str) -> Result:
        path = self.document.pathlist.get(uuid)
        if path is None:
            return False, f"Tried to generate unknown path {uuid}"
        if path.generating or uuid in self._in_flight:
            return False, f"{path.name} is already generating"
        if not path.can_generate():
            return False, f"{path.name} needs at least two waypoints to generate"

        self._in_flight.add(uuid)
        try:
            return await self._run_generation(path)
        finally:
            self._in_flight.discard(uuid)

    async def _run_generation(self, path) -> Result:
        uuid = path.uuid
        name = path.name
        path.set_generating(True)
        try:
            with self.document.history.without_undo():
                ok, msg = optimize_control_interval_counts(
                    path, self.document.robot_config, self.settings.nominal_step_seconds
                )
        except Exception as exc:
            ok, msg = False, f"Control interval planning failed for {name}: {exc}"
        if not ok:
            path.set_generating(False)
            logger.warning("control interval planning failed", path=name, reason=msg)
            return False, msg
        if self.solver is None:
            path.set_generating(False)
            return False, "No trajectory solver is configured"

        solver_path = path.as_solver_path()
        robot = self.document.robot_config.as_saved_robot_config()
        logger.info("generation started", path=name, waypoints=len(solver_path["waypoints"]))
        try:
            samples = await self.solver.generate(uuid, solver_path, robot)
        except Exception as exc:
            target = self.document.pathlist.get(uuid)
            if target is not None:
                target.set_generating(False)
            logger.error("generation failed", path=name, error=str(exc))
            return False, f"Generation failed for {name}: {exc}"

        target = self.document.pathlist.get(uuid)
        if target is None:
            logger.info("generated path no longer exists", path=name)
            return True, f"{name} was removed before generation finished"
        try:
            target.set_trajectory(samples)
        except (TypeError, ValueError) as exc:
            target.set_generating(False)
            logger.error("solver returned malformed samples", path=name, error=str(exc))
            return False, f"Generation failed for {name}: {exc}"
        logger.info("generation finished", path=name, samples=len(target.generated))
        return True, f"Generated {name}"

    async def generate_with_export(self, uuid: str) -> Result:
        """Generate, then write the trajectory file if the document has been saved.

        An export failure is reported but the cached result is kept.
        """
        ok, msg = await self.generate_path(uuid)
        if not ok or self.save_file_dir is None:
            return ok, msg
        try:
            await self.write_trajectory(lambda: self.get_traj_file_path(uuid), uuid)
        except Exception as exc:
            logger.error("export after generation failed", path=uuid, error=str(exc))
            return False, f"Couldn't export trajectory: {exc}"
        return ok, msg

    async def generate_active(self) -> Result:
        return await self.generate_with_export(self.document.pathlist.active_path_uuid)

    # ---------- export ----------
    @property
    def chor_relative_traj_dir(self) -> str:
        return self.settings.robot_project_traj_dir if self.is_robot_project else ""

    def get_traj_file_path(self, uuid: str) -> TrajFileLocation:
        """``(dir, file name)`` of the trajectory file; raises :class:`ExportError`."""
        path = self.document.pathlist.get(uuid)
        if path is None:
            raise ExportError(f"Trajectory has unknown uuid {uuid}")
        if self.save_file_dir is None:
            raise ExportError("Project has not been saved yet")
        rel = self.chor_relative_traj_dir
        directory = os.path.join(self.save_file_dir, rel) if rel else self.save_file_dir
        return directory, f"{path.name}{self.settings.trajectory_extension}"

    async def write_trajectory(self, file_path: TrajFileProvider, uuid: str) -> bool:
        """Write the cached trajectory of ``uuid``; False if nothing was written.

        Raises :class:`ExportError` or the file bridge's error.
        """
        path = self.document.pathlist.get(uuid)
        if path is None:
            raise ExportError(f"Tried to export trajectory with unknown uuid {uuid}")
        trajectory = path.saved_trajectory()
        if trajectory is None:
            return False
        content = json.dumps({"samples": trajectory}, indent=4)
        location = file_path()
        if inspect.isawaitable(location):
            location = await location
        if location is None:
            return False
        directory, name = location
        if not await self.fs.exists(directory):
            await self.fs.create_dir(directory)
        await self.fs.write_file(directory, name, content)
        logger.info("trajectory written", path=path.name, file=os.path.join(directory, name))
        return True

    async def export_trajectory(self, uuid: str) -> Result:
        async def ask() -> Optional[TrajFileLocation]:
            default_dir, default_name = self.get_traj_file_path(uuid)
            chosen = await self.dialogs.choose_save_location(
                "Export Trajectory",
                os.path.join(default_dir, default_name),
                [("Trajectory", [self.settings.trajectory_extension.lstrip(".")])],
            )
            if chosen is None:
                raise ExportError(_CANCELLED)
            return os.path.dirname(chosen), os.path.basename(chosen)

        try:
            written = await self.write_trajectory(ask, uuid)
        except ExportError as exc:
            if str(exc) != _CANCELLED:
                logger.error("export failed", path=uuid, error=str(exc))
            return False, str(exc)
        except Exception as exc:
            logger.error("export failed", path=uuid, error=str(exc))
            return False, f"Couldn't export trajectory: {exc}"
        if not written:
            return False, "Path has no generated trajectory to export"
        return True, "Exported trajectory"

    async def export_active_trajectory(self) -> Result:
        return await self.export_trajectory(self.document.pathlist.active_path_uuid)

    async def export_all_trajectories(self) -> Dict[str, Result]:
        """Export every path's cached trajectory; one failure never blocks the rest."""
        pathlist = self.document.pathlist
        uuids = pathlist.path_uuids
        names = pathlist.path_names

        def provider(uuid: str) -> Callable[[], TrajFileLocation]:
            return lambda: self.get_traj_file_path(uuid)

        outcomes: List[Any] = await asyncio.gather(
            *(self.write_trajectory(provider(uuid), uuid) for uuid in uuids),
            return_exceptions=True,
        )
        results: Dict[str, Result] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("trajectory export failed", path=name, error=str(outcome))
                results[name] = (False, str(outcome))
            elif outcome:
                results[name] = (True, "Exported trajectory")
            else:
                results[name] = (True, "No generated trajectory")
        return results

    async def load_trajectory(self, uuid: str) -> Result:
        """Read a robot project's ``.traj`` file back into the path's cache."""
        if not self.is_robot_project:
            return False, "Trajectory files are only loaded for robot projects"
        current = self.document.pathlist.get(uuid)
        label = current.name if current is not None else uuid
        try:
            directory, name = self.get_traj_file_path(uuid)
            payload = json.loads(await self.fs.read_file(os.path.join(directory, name)))
        except Exception as exc:
            logger.warning("trajectory load failed", path=uuid, error=str(exc))
            return False, f"Couldn't load trajectory: {exc}"
        samples = payload.get("samples") if isinstance(payload, dict) else None
        if not isinstance(samples, list) or not all(isinstance(s, dict) for s in samples):
            return False, "Trajectory file has no sample list"
        path = self.document.pathlist.get(uuid)
        if path is None:
            logger.info("loaded trajectory for a removed path", path=label)
            return True, f"{label} was removed before its trajectory loaded"
        path.set_trajectory(samples)
        return True, "Loaded trajectory"

    # ---------- documents ----------
    def new_file(self) -> None:
        self.save_file_dir = None
        self.save_file_name = None
        self.is_robot_project = False
        self.document.new_document()

    async def open_from_contents(self, contents: str) -> Result:
        self._autosave_suspended += 1
        try:
            self.document.from_saved_document(json.loads(contents))
        except (json.JSONDecodeError, DocumentFormatError) as exc:
            logger.error("invalid document", error=str(exc))
            return False, f"Could not parse selected document: {exc}"
        finally:
            self._autosave_suspended -= 1
        return True, "Opened document"

    async def open_file(self, file_path: str) -> Result:
        try:
            contents = await self.fs.read_file(file_path)
        except Exception as exc:
            logger.error("document read failed", file=file_path, error=str(exc))
            return False, f"File load error: {exc}"
        ok, msg = await self.open_from_contents(contents)
        if not ok:
            return ok, msg
        directory = os.path.dirname(os.path.abspath(file_path))
        self.save_file_dir = directory
        self.save_file_name = os.path.basename(file_path)
        try:
            self.is_robot_project = await self.fs.contains_build_gradle(directory)
        except Exception as exc:
            logger.warning("project type check failed", dir=directory, error=str(exc))
            self.is_robot_project = False
        return ok, msg

    async def save_file(self) -> Result:
        if self.save_file_dir is None or self.save_file_name is None:
            return await self.save_file_dialog()
        return await self.save_file_as(self.save_file_dir, self.save_file_name)

    async def save_file_dialog(self) -> Result:
        ext = self.settings.document_extension.lstrip(".")
        chosen = await self.dialogs.choose_save_location("Save Document", "", [("Trajectory Document", [ext])])
        if chosen is None:
            return False, _CANCELLED
        return await self.save_file_as(os.path.dirname(chosen), os.path.basename(chosen))

    async def save_file_as(self, dir: str, name: str) -> Result:
        contents = json.dumps(self.document.as_saved_document(), indent=4)
        try:
            await self.fs.write_file(dir, name, contents)
            robot_project = await self.fs.contains_build_gradle(dir)
        except Exception as exc:
            logger.error("document save failed", dir=dir, name=name, error=str(exc))
            return False, f"Couldn't save document: {exc}"
        self.save_file_dir = dir
        self.save_file_name = name
        if robot_project != self.is_robot_project:
            self.is_robot_project = robot_project
            results = await self.export_all_trajectories()
            failed = [n for n, (ok, _) in results.items() if not ok]
            if failed:
                return True, f"Saved; couldn't export trajectories for {', '.join(failed)}"
        return True, "Saved document"

    async def request_close(self) -> bool:
        """Offer to save an unsaved document. Returns True once it is safe to close."""
        if self.save_file_name is None and await self.dialogs.ask_yes_no("Save project?"):
            await self.save_file()
        self.close()
        return True
