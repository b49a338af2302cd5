# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Error taxonomy shared by the job manager, the worker and their callers."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from .constants import MINIMUM_ESLINT_VERSION


class ErrorKind(str, Enum):
    """Enumerate the typed failures a worker may report for a job."""

    CONFIG_NOT_FOUND = "config-not-found"
    INCOMPATIBLE_VERSION = "incompatible-version"
    VERSION_OVERLAP = "version-overlap"
    NO_PROJECT = "no-project"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: object) -> ErrorKind:
        """Return the member matching ``raw`` or :attr:`UNKNOWN` when unrecognised.

        Args:
            raw: ``type`` value carried by a failure payload.

        Returns:
            ErrorKind: Matching error kind.
        """

        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


class LintBridgeError(Exception):
    """Base class for every error raised by lintbridge."""


class InvalidBinaryError(LintBridgeError):
    """Raised when a runtime executable cannot be invoked."""

    def __init__(self, candidate: str, detail: str | None = None) -> None:
        message = f"Unable to run '{candidate} --version'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.candidate = candidate
        self.detail = detail


class InvalidWorkerError(LintBridgeError):
    """Raised when the worker was never created because its runtime binary is invalid."""

    def __init__(self, worker_bin: str) -> None:
        super().__init__(f"Worker was never created because of invalid worker binary '{worker_bin}'")
        self.worker_bin = worker_bin


class WorkerSpawnError(LintBridgeError):
    """Raised when the worker process fails to start or exits before signalling readiness."""


class WorkerKilledError(LintBridgeError):
    """Raised for every job still pending when its worker process goes away."""

    def __init__(self, message: str = "Worker was killed before the job completed") -> None:
        super().__init__(message)


class WorkerUnknownError(LintBridgeError):
    """Out-of-band worker error that cannot be attributed to a specific job."""

    def __init__(self, payload: object) -> None:
        super().__init__("Unknown worker error")
        self.payload = payload


class ProtocolViolationError(LintBridgeError):
    """Raised when a worker message has neither a key nor a recognisable shape."""

    def __init__(self, message: str, payload: object = None) -> None:
        super().__init__(message)
        self.payload = payload


class JobTimeoutError(LintBridgeError):
    """Raised when a job does not complete within the configured timeout."""

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"Job {key} did not complete within {timeout:.1f}s")
        self.key = key
        self.timeout = timeout


class JobError(LintBridgeError):
    """Typed failure reported by the worker for one correlated job."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        key: str | None = None,
        version: str | None = None,
        stack: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.key = key
        self.version = version
        self.stack = stack

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> JobError:
        """Build an error from a worker failure payload.

        Args:
            payload: Decoded failure object carrying ``error`` and optionally ``type``.

        Returns:
            JobError: Error describing the worker failure.
        """

        error = payload.get("error")
        version = payload.get("version")
        stack = payload.get("stack")
        return cls(
            ErrorKind.from_raw(payload.get("type")),
            str(error) if error else "Unknown error",
            key=str(payload["key"]) if payload.get("key") else None,
            version=str(version) if version is not None else None,
            stack=str(stack) if stack is not None else None,
        )

    def to_payload(self) -> dict[str, object]:
        """Return the wire representation of this failure."""

        payload: dict[str, object] = {"key": self.key, "error": self.message, "type": self.kind.value}
        if self.version is not None:
            payload["version"] = self.version
        if self.stack is not None:
            payload["stack"] = self.stack
        return payload


class EngineError(LintBridgeError):
    """Raised inside the worker when the lint engine fails unexpectedly."""


class EngineNotFoundError(EngineError):
    """Raised when no ESLint installation can be resolved for a file."""


class ConfigNotFoundError(EngineError):
    """Raised when ESLint cannot discover a configuration for the linted file."""


class IncompatibleVersionError(EngineError):
    """Raised when the resolved ESLint is older than the minimum supported version."""

    def __init__(self, version: str) -> None:
        super().__init__(
            f"This project uses ESLint version {version}; lintbridge requires a minimum of {MINIMUM_ESLINT_VERSION}.",
        )
        self.version = version


class VersionOverlapError(EngineError):
    """Raised when the legacy ``linter-eslint`` package already handles the resolved ESLint."""

    def __init__(self, version: str) -> None:
        super().__init__(
            f"ESLint {version} is handled by linter-eslint, which is present in this installation.",
        )
        self.version = version


__all__ = [
    "ConfigNotFoundError",
    "EngineError",
    "EngineNotFoundError",
    "ErrorKind",
    "IncompatibleVersionError",
    "InvalidBinaryError",
    "InvalidWorkerError",
    "JobError",
    "JobTimeoutError",
    "LintBridgeError",
    "ProtocolViolationError",
    "VersionOverlapError",
    "WorkerKilledError",
    "WorkerSpawnError",
    "WorkerUnknownError",
]
