# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Relay ESLint diagnostics from an out-of-process worker to an editor integration."""

from __future__ import annotations

from .binary import BinaryValidator
from .config import ConfigStore, LinterConfig
from .constants import PACKAGE_VERSION
from .errors import ErrorKind, InvalidWorkerError, JobError, LintBridgeError, WorkerKilledError
from .job_manager import JobManager
from .protocol import JobBundle, JobType
from .service import LinterService

__version__ = PACKAGE_VERSION

__all__ = [
    "BinaryValidator",
    "ConfigStore",
    "ErrorKind",
    "InvalidWorkerError",
    "JobBundle",
    "JobError",
    "JobManager",
    "JobType",
    "LintBridgeError",
    "LinterConfig",
    "LinterService",
    "WorkerKilledError",
    "__version__",
]
