# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Editor-facing service that turns worker replies into linter messages and notices."""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Final, Literal, Protocol

from pydantic import Field

from .binary import BinaryValidator
from .config import ConfigStore, LinterConfig, config_should_invalidate_worker_cache
from .constants import PACKAGE_NAME, PACKAGE_VERSION
from .errors import (
    ErrorKind,
    InvalidBinaryError,
    InvalidWorkerError,
    JobError,
    LintBridgeError,
)
from .job_manager import JobManager
from .logging import fail, info, ok, warn
from .protocol import (
    DebugResponse,
    FixDescriptor,
    JobBundle,
    JobResponse,
    JobType,
    LintResponse,
    MessageLocation,
    Position,
    WireModel,
)
from .text import position_for_index

LOGGER = logging.getLogger(__name__)

LEGACY_PACKAGE: Final[str] = "linter-eslint"
CONFIG_NOT_FOUND_EXCERPT: Final[str] = "Error while running ESLint: No ESLint configuration found."
REMOTE_FILE_EXCERPT: Final[str] = "Remote file open; lintbridge is disabled for this file."
_UNKNOWN: Final[str] = "(unknown)"


class Notifier(Protocol):
    """Destination for user-facing notifications."""

    def info(self, title: str, detail: str | None = None) -> None: ...

    def success(self, title: str, detail: str | None = None) -> None: ...

    def warning(self, title: str, detail: str | None = None) -> None: ...

    def error(self, title: str, detail: str | None = None) -> None: ...


class ConsoleNotifier:
    """Render notifications on the terminal through the rich-backed helpers."""

    def __init__(self, *, use_emoji: bool = True, use_color: bool | None = None) -> None:
        self._use_emoji = use_emoji
        self._use_color = use_color

    def info(self, title: str, detail: str | None = None) -> None:
        info(_compose(title, detail), use_emoji=self._use_emoji, use_color=self._use_color)

    def success(self, title: str, detail: str | None = None) -> None:
        ok(_compose(title, detail), use_emoji=self._use_emoji, use_color=self._use_color)

    def warning(self, title: str, detail: str | None = None) -> None:
        warn(_compose(title, detail), use_emoji=self._use_emoji, use_color=self._use_color)

    def error(self, title: str, detail: str | None = None) -> None:
        fail(_compose(title, detail), use_emoji=self._use_emoji, use_color=self._use_color)


def _compose(title: str, detail: str | None) -> str:
    return f"{title}\n{detail}" if detail else title


class Solution(WireModel):
    """Replacement the editor can apply to resolve a violation."""

    position: Position
    replace_with: str


class EditorMessage(WireModel):
    """Lint message with the raw fix translated into editor solutions."""

    severity: Literal["info", "warning", "error"]
    location: MessageLocation
    excerpt: str
    url: str | None = None
    description: str | None = None
    solutions: list[Solution] = Field(default_factory=list)


def solutions_for_fix(fix: FixDescriptor, text: str) -> list[Solution]:
    """Convert a character-range fix into a ``(row, column)`` replacement for ``text``."""

    start, end = (position_for_index(text, index) for index in fix.range)
    return [Solution(position=(start, end), replace_with=fix.text)]


def first_line_range(text: str) -> Position:
    """Return the range covering the first line of ``text``."""

    first_line = text.split("\n", 1)[0].rstrip("\r")
    return ((0, 0), (0, len(first_line)))


def _user_message(
    file_path: str,
    text: str,
    *,
    excerpt: str,
    severity: Literal["info", "warning", "error"] = "error",
    description: str | None = None,
) -> list[EditorMessage]:
    return [
        EditorMessage(
            severity=severity,
            excerpt=excerpt,
            description=description,
            location=MessageLocation(file=file_path, position=first_line_range(text)),
        ),
    ]


@dataclass(slots=True)
class NotifiedFlags:
    """Notifications already shown this session."""

    incompatible_version: bool = False
    invalid_worker_bin: bool = False


@dataclass(slots=True)
class DebugReport:
    """Diagnostic snapshot describing which ESLint would lint a file and how."""

    package_version: str
    config: dict[str, object]
    eslint_path: str | None
    eslint_version: str | None
    is_incompatible: bool
    is_overlap: bool
    worker_pid: int | None
    worker_bin_path: str
    worker_version: str
    hours_since_restart: float
    platform: str = sys.platform
    which_package_will_lint: str = PACKAGE_NAME
    file_path: str | None = None

    def lines(self) -> list[str]:
        return [
            f"lintbridge version: {self.package_version}",
            f"Worker using runtime at path: {self.worker_bin_path}",
            f"Worker runtime version: {self.worker_version}",
            f"Worker PID: {self.worker_pid}",
            f"ESLint version: {self.eslint_version}",
            f"ESLint location: {self.eslint_path}",
            f"Linting in this project performed by: {self.which_package_will_lint}",
            f"Hours since last restart: {self.hours_since_restart}",
            f"Platform: {self.platform}",
            f"Current file: {self.file_path}",
            f"lintbridge configuration: {json.dumps(self.config, indent=2)}",
        ]


def which_package_will_lint(*, is_incompatible: bool, is_overlap: bool, legacy_present: bool) -> str:
    if is_incompatible:
        return LEGACY_PACKAGE if legacy_present else "(nothing)"
    if is_overlap:
        return LEGACY_PACKAGE if legacy_present else PACKAGE_NAME
    return PACKAGE_NAME


class LinterService:
    """Coordinate lint, fix and debug requests on behalf of an editor.

    The service goes to sleep when it sees evidence that a project will not be
    linted (no ESLint config, an ESLint that is too old, a version handled by
    the legacy package). Sleeping kills the worker and answers lint requests
    with ``None`` without a round-trip; any configuration change or explicit
    command wakes it again, and the job manager respawns the worker lazily.
    """

    def __init__(
        self,
        job_manager: JobManager,
        config_store: ConfigStore,
        *,
        notifier: Notifier | None = None,
        legacy_package_present: Callable[[], bool] | None = None,
        validator: BinaryValidator | None = None,
    ) -> None:
        self._jobs = job_manager
        self._config_store = config_store
        self._notifier = notifier or ConsoleNotifier()
        self._legacy_package_present = legacy_package_present or (lambda: False)
        self._validator = validator or BinaryValidator()
        self._started = time.monotonic()
        self.inactive = False
        self.notified = NotifiedFlags()
        self._unsubscribe = config_store.on_change(self.on_config_changed)

    @property
    def config(self) -> LinterConfig:
        return self._config_store.get()

    def dispose(self) -> None:
        self._unsubscribe()
        self._jobs.dispose()

    def sleep(self) -> None:
        self.inactive = True
        self._jobs.suspend()

    def wake(self) -> None:
        # The worker is recreated lazily by the next job.
        self.inactive = False

    def is_legacy_package_present(self) -> bool:
        return self._legacy_package_present()

    def should_auto_fix(self, *, is_modified: bool, scopes: tuple[str, ...] = ()) -> bool:
        """Return ``True`` when a save should trigger a fix job."""

        if self.inactive or is_modified:
            return False
        config = self.config
        if not config.autofix.fix_on_save:
            return False
        return not scopes or any(scope in config.scopes for scope in scopes)

    # Jobs ------------------------------------------------------------------------

    def lint(
        self,
        file_path: str | None,
        contents: str,
        *,
        project_path: str | None = None,
        is_modified: bool = False,
        will_auto_fix: bool = False,
    ) -> list[EditorMessage] | None:
        """Lint ``contents`` as the buffer of ``file_path``.

        Returns:
            list[EditorMessage] | None: Messages for the editor, or ``None`` when
            previous results should be left untouched.
        """

        if self.inactive:
            LOGGER.debug("Inactive; skipping lint")
            return None
        if not file_path:
            return None
        if "://" in file_path:
            return _user_message(file_path, contents, excerpt=REMOTE_FILE_EXCERPT, severity="warning")

        try:
            response = self._send(
                JobType.LINT,
                contents=contents,
                file_path=file_path,
                project_path=project_path or "",
                is_modified=is_modified,
            )
        except LintBridgeError as exc:
            return self.handle_error(exc, JobType.LINT, file_path=file_path, text=contents)

        if not isinstance(response, LintResponse):
            return None
        messages: list[EditorMessage] = []
        for result in response.results:
            solutions: list[Solution] = []
            if result.fix is not None:
                if will_auto_fix:
                    # A fix-on-save job is about to resolve this violation.
                    continue
                solutions = solutions_for_fix(result.fix, contents)
            messages.append(
                EditorMessage(
                    severity=result.severity,
                    location=result.location,
                    excerpt=result.excerpt,
                    url=result.url,
                    solutions=solutions,
                ),
            )
        LOGGER.debug("Linting results: %d message(s)", len(messages))
        return messages

    def fix(
        self,
        file_path: str,
        contents: str,
        *,
        project_path: str | None = None,
        is_save: bool = False,
        is_modified: bool = False,
    ) -> int | None:
        """Fix ``file_path`` on disk and report how many violations were fixed.

        The worker writes the fixed text to disk; callers must reload their
        buffer. A user-triggered fix wakes a sleeping service for the duration
        of the job.

        Returns:
            int | None: Number of fixes applied, ``None`` when nothing ran.
        """

        was_inactive = self.inactive
        self.wake()
        try:
            if is_modified:
                self._notifier.error("lintbridge: Please save before fixing.")
            if not contents:
                return None
            try:
                response = self._send(
                    JobType.FIX,
                    contents=contents,
                    file_path=file_path,
                    project_path=project_path,
                )
            except LintBridgeError as exc:
                self.handle_error(exc, JobType.FIX, file_path=file_path, text=contents)
                return None
            fixes = (response.fix_count or 0) if isinstance(response, LintResponse) else 0
            if not is_save:
                noun = "fix" if fixes == 1 else "fixes"
                self._notifier.success(f"Applied {fixes} {noun}." if fixes > 0 else "Nothing to fix.")
            return fixes
        finally:
            if was_inactive and not is_save:
                self.sleep()

    def debug(self, file_path: str | None = None, project_path: str | None = None) -> DebugReport | None:
        """Collect and announce debug information for ``file_path``."""

        was_inactive = self.inactive
        self.wake()
        try:
            return self._debug(file_path, project_path)
        finally:
            if was_inactive:
                self.sleep()

    def _debug(self, file_path: str | None, project_path: str | None) -> DebugReport | None:
        config = self.config
        try:
            try:
                response = self._send(JobType.DEBUG, file_path=file_path, project_path=project_path)
            except InvalidWorkerError:
                response = DebugResponse(key="", eslint_path=_UNKNOWN, eslint_version=_UNKNOWN)
        except LintBridgeError as exc:
            self._notifier.error(str(exc))
            return None
        if not isinstance(response, DebugResponse):
            self._notifier.error(f"Unexpected debug response: {response!r}")
            return None

        worker_bin = config.worker_bin
        try:
            worker_bin_path = self._validator.resolve_absolute_path(worker_bin)
        except InvalidBinaryError:
            worker_bin_path = worker_bin
        legacy_present = self.is_legacy_package_present()
        is_overlap = response.is_overlap and legacy_present
        report = DebugReport(
            package_version=PACKAGE_VERSION,
            config=config.to_wire(),
            eslint_path=response.eslint_path,
            eslint_version=response.eslint_version,
            is_incompatible=response.is_incompatible,
            is_overlap=is_overlap,
            worker_pid=response.worker_pid,
            worker_bin_path=worker_bin_path,
            worker_version=(self._validator.validate_sync(worker_bin) or _UNKNOWN).replace("\n", " "),
            hours_since_restart=round((time.monotonic() - self._started) / 3600, 1),
            which_package_will_lint=which_package_will_lint(
                is_incompatible=response.is_incompatible,
                is_overlap=is_overlap,
                legacy_present=legacy_present,
            ),
            file_path=file_path,
        )
        self._notifier.info("lintbridge debug information", "\n".join(report.lines()))
        return report

    def clear_cache(self) -> Future[JobResponse]:
        """Ask the worker to drop its cached engine instances."""

        LOGGER.debug("Telling the worker to clear its cache")
        return self._jobs.submit(JobBundle(type=JobType.CLEAR_CACHE))

    # Errors ----------------------------------------------------------------------

    def notify_about_invalid_worker_bin(self) -> None:
        if self.notified.invalid_worker_bin:
            return
        self._notifier.error(
            "lintbridge: Invalid worker runtime path",
            "Couldn't use the configured path to the worker runtime. Are you sure it's correct?",
        )
        self.notified.invalid_worker_bin = True

    def handle_error(
        self,
        error: BaseException,
        job_type: JobType,
        *,
        file_path: str | None = None,
        text: str = "",
    ) -> list[EditorMessage] | None:
        """Apply the failure policy for ``error`` raised by a ``job_type`` job.

        Returns:
            list[EditorMessage] | None: Messages to show in place of lint results.
        """

        if isinstance(error, InvalidWorkerError):
            # Behave as though no linter were installed.
            self.notify_about_invalid_worker_bin()
            self.sleep()
            return None

        kind = error.kind if isinstance(error, JobError) else None
        detail = error.message if isinstance(error, JobError) else str(error)

        if kind is ErrorKind.CONFIG_NOT_FOUND:
            if self.config.disabling.disable_when_no_eslint_config:
                self.sleep()
                return []
            if job_type is JobType.FIX:
                self._notifier.error("lintbridge: No .eslintrc found", detail)
                return None
            if file_path is None:
                return None
            return _user_message(file_path, text, excerpt=CONFIG_NOT_FOUND_EXCERPT)

        if kind in (ErrorKind.NO_PROJECT, ErrorKind.VERSION_OVERLAP):
            self.sleep()
            return None

        if kind is ErrorKind.INCOMPATIBLE_VERSION:
            already_notified = self.notified.incompatible_version
            self.sleep()
            if self.is_legacy_package_present() or already_notified or not self.config.warn_about_old_eslint:
                return None
            version = error.version if isinstance(error, JobError) else None
            self._notifier.warning(
                "lintbridge: Incompatible ESLint",
                f"The ESLint module in this project is of version {version}; lintbridge requires "
                f"a version of 7.0.0 or greater. You can install the legacy `{LEGACY_PACKAGE}` "
                "package if you don't want to upgrade ESLint.\n\n"
                "You can disable this message in package settings.",
            )
            self.notified.incompatible_version = True
            return None

        self._notifier.error("lintbridge Error", detail)
        return None

    # Configuration ---------------------------------------------------------------

    def on_config_changed(self, config: LinterConfig, previous: LinterConfig | None) -> None:
        """React to a new configuration snapshot."""

        self.wake()
        LOGGER.debug("Config changed: %s", config)
        if previous is None:
            return
        if config_should_invalidate_worker_cache(previous, config):
            self._clear_cache_quietly()
        if config.worker_bin != previous.worker_bin:
            self.notified.invalid_worker_bin = False
            self._jobs.suspend()
            self._validator.validate_async(config.worker_bin).add_done_callback(self._on_worker_bin_checked)

    def _on_worker_bin_checked(self, future: Future[str]) -> None:
        error = future.exception()
        if error is None:
            LOGGER.info("Switched worker runtime to version: %s", future.result())
            return
        LOGGER.debug("Worker runtime validation failed: %s", error)
        self.sleep()
        self.notify_about_invalid_worker_bin()

    def _clear_cache_quietly(self) -> None:
        try:
            self.clear_cache()
        except LintBridgeError as exc:
            LOGGER.debug("Unable to clear worker cache: %s", exc)

    def _send(self, job_type: JobType, **fields: object) -> JobResponse:
        bundle = JobBundle.model_validate(
            {
                "type": job_type,
                "config": self.config,
                "legacy_package_present": self.is_legacy_package_present(),
                **{name: value for name, value in fields.items() if value is not None},
            },
        )
        return self._jobs.send(bundle)


__all__ = [
    "CONFIG_NOT_FOUND_EXCERPT",
    "ConsoleNotifier",
    "DebugReport",
    "EditorMessage",
    "LinterService",
    "Notifier",
    "NotifiedFlags",
    "Solution",
    "first_line_range",
    "solutions_for_fix",
    "which_package_will_lint",
]
