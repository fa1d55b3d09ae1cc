# -*- coding: utf-8 -*-
"""Interfaces to the collaborators the core does not own.

The solver, the file system and native dialogs are consumed through the
protocols below so the orchestrator can be driven by a desktop shell, a CLI
or test fakes. :class:`LocalFileSystem` is the plain on-disk implementation.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

Sample = Dict[str, float]


class SolverService(Protocol):
    async def generate(self, path_uuid: str, path: Dict[str, Any], robot_config: Dict[str, Any]) -> List[Sample]:
        """Return the trajectory samples or raise :class:`SolverError`."""
        ...


class FileSystemBridge(Protocol):
    async def write_file(self, dir: str, name: str, contents: str) -> None: ...

    async def read_file(self, path: str) -> str: ...

    async def exists(self, path: str) -> bool: ...

    async def create_dir(self, dir: str) -> None: ...

    async def contains_build_gradle(self, dir: str) -> bool: ...


class DialogBridge(Protocol):
    async def ask_yes_no(self, prompt: str) -> bool: ...

    async def choose_save_location(
        self, title: str, default_path: str, filters: Sequence[Tuple[str, Sequence[str]]]
    ) -> Optional[str]:
        """Absolute file path, or ``None`` when cancelled."""
        ...


def _write_text(path: str, contents: str) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(contents)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


class LocalFileSystem:
    """Blocking disk I/O pushed to a worker thread."""

    async def write_file(self, dir: str, name: str, contents: str) -> None:
        await asyncio.to_thread(_write_text, os.path.join(dir, name), contents)

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(_read_text, path)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.exists, path)

    async def create_dir(self, dir: str) -> None:
        await asyncio.to_thread(os.makedirs, dir, exist_ok=True)

    async def contains_build_gradle(self, dir: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, os.path.join(dir, "build.gradle"))


class NoDialogs:
    """Dialog bridge for headless use: never confirms, always cancels."""

    async def ask_yes_no(self, prompt: str) -> bool:
        return False

    async def choose_save_location(
        self, title: str, default_path: str, filters: Sequence[Tuple[str, Sequence[str]]]
    ) -> Optional[str]:
        return None
