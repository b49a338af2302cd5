# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Worker process: resolves ESLint per directory and answers job bundles."""

from __future__ import annotations

from .cwd import descends_from, find_cwd
from .dispatcher import EngineBundle, WorkerDispatcher
from .emitter import Emitter
from .engine import EngineResolver, EslintEngine, LintEngine
from .fixes import apply_fixes
from .formatting import format_results
from .models import EngineInstallation, EngineMessage, EngineOptions, LintResult
from .runtime import run_worker

__all__ = [
    "Emitter",
    "EngineBundle",
    "EngineInstallation",
    "EngineMessage",
    "EngineOptions",
    "EngineResolver",
    "EslintEngine",
    "LintEngine",
    "LintResult",
    "WorkerDispatcher",
    "apply_fixes",
    "descends_from",
    "find_cwd",
    "format_results",
    "run_worker",
]
