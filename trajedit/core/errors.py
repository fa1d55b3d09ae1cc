# -*- coding: utf-8 -*-
"""Exceptions raised by the document core."""

from __future__ import annotations


class DocumentFormatError(ValueError):
    """A persisted document could not be recognized or rebuilt."""


class ExportError(RuntimeError):
    """A trajectory file location could not be determined or was refused."""


class SolverError(RuntimeError):
    """The trajectory solver rejected or failed to solve a path."""
