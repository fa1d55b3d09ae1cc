# -*- coding: utf-8 -*-
"""Application entry point (headless).

    trajedit project.chor --export-all
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from .core.bridges import LocalFileSystem, NoDialogs
from .core.generation import DocumentManager
from .utils.config import get_settings
from .utils.logging_config import setup_logger

logger = setup_logger()


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="trajedit", description="Open a trajectory document and export its paths.")
    parser.add_argument("document", help="path to a saved document")
    parser.add_argument("--generate", metavar="NAME", action="append", default=[],
                        help="generate the named path before exporting (needs a solver)")
    parser.add_argument("--export-all", action="store_true", help="write every cached trajectory file")
    return parser.parse_args(argv)


async def run(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    manager = DocumentManager(solver=None, fs=LocalFileSystem(), dialogs=NoDialogs(), settings=get_settings())
    ok, msg = await manager.open_file(args.document)
    if not ok:
        logger.error("open failed", reason=msg)
        manager.close()
        return 1

    status = 0
    for name in args.generate:
        path = manager.document.pathlist.find_by_name(name)
        if path is None:
            logger.error("no such path", path=name)
            status = 1
            continue
        ok, msg = await manager.generate_path(path.uuid)
        if not ok:
            logger.error("generation failed", path=name, reason=msg)
            status = 1

    if args.export_all:
        for name, (ok, msg) in (await manager.export_all_trajectories()).items():
            if ok:
                logger.info("export", path=name, result=msg)
            else:
                logger.error("export failed", path=name, reason=msg)
                status = 1
    manager.close()
    return status


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
