# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Choose the working directory an engine instance is created for."""

from __future__ import annotations

import os
from pathlib import Path

from ..constants import IGNORE_MARKER


def descends_from(file_path: str | Path, project_path: str | Path) -> bool:
    """Return ``True`` when ``file_path`` lies strictly below ``project_path``."""

    project = str(project_path)
    prefix = project if project.endswith(os.sep) else f"{project}{os.sep}"
    return str(file_path).startswith(prefix)


def find_cwd(file_path: str | Path | None, project_path: str | Path | None) -> Path | None:
    """Return the directory engine instances for ``file_path`` should run in.

    Files outside the project (or with no project) use their own directory.
    Otherwise the nearest ancestor holding an ``.eslintignore`` wins, searching
    upward from the file but never above the project root, which is the
    fallback. ESLint only honours ``$cwd/.eslintignore``, so a marker is a
    strong signal that commands are meant to run from that folder.

    Args:
        file_path: Absolute path of the file being linted.
        project_path: Absolute project root, or ``None``/empty when unknown.

    Returns:
        Path | None: Resolved directory, ``None`` only when neither path is known.
    """

    if file_path is None:
        return Path(project_path) if project_path else None
    file = Path(file_path)
    if not project_path or not descends_from(file, project_path):
        return file.parent

    project = Path(project_path)
    directory = file.parent
    while len(directory.parts) > len(project.parts):
        if (directory / IGNORE_MARKER).exists():
            return directory
        directory = directory.parent
    return project


__all__ = ["descends_from", "find_cwd"]
