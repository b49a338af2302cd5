# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the editor-facing linter service and its error policy."""

from __future__ import annotations

import sys
import threading
from concurrent.futures import Future
from pathlib import Path

import pytest

from lintbridge.binary import BinaryValidator
from lintbridge.config import ConfigStore
from lintbridge.errors import ErrorKind, InvalidWorkerError, JobError, LintBridgeError, WorkerKilledError
from lintbridge.job_manager import JobManager
from lintbridge.protocol import (
    ClearCacheResponse,
    DebugResponse,
    FixDescriptor,
    JobBundle,
    JobResponse,
    JobType,
    LintMessage,
    LintResponse,
    MessageLocation,
)
from lintbridge.service import (
    CONFIG_NOT_FOUND_EXCERPT,
    LinterService,
    first_line_range,
    solutions_for_fix,
    which_package_will_lint,
)


class FakeJobManager:
    def __init__(self, *responses: JobResponse | LintBridgeError) -> None:
        self.responses = list(responses)
        self.sent: list[JobBundle] = []
        self.suspended = 0
        self.disposed = False

    def send(self, bundle: JobBundle, *, timeout: float | None = None) -> JobResponse:
        self.sent.append(bundle)
        item = self.responses.pop(0) if self.responses else ClearCacheResponse(key="auto")
        if isinstance(item, LintBridgeError):
            raise item
        return item

    def submit(self, bundle: JobBundle) -> Future[JobResponse]:
        future: Future[JobResponse] = Future()
        try:
            future.set_result(self.send(bundle))
        except LintBridgeError as exc:
            future.set_exception(exc)
        return future

    def suspend(self) -> Future[None]:
        self.suspended += 1
        done: Future[None] = Future()
        done.set_result(None)
        return done

    def dispose(self) -> None:
        self.disposed = True


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, str | None]] = []
        self.errored = threading.Event()

    def info(self, title: str, detail: str | None = None) -> None:
        self.events.append(("info", title, detail))

    def success(self, title: str, detail: str | None = None) -> None:
        self.events.append(("success", title, detail))

    def warning(self, title: str, detail: str | None = None) -> None:
        self.events.append(("warning", title, detail))

    def error(self, title: str, detail: str | None = None) -> None:
        self.events.append(("error", title, detail))
        self.errored.set()

    def titles(self, level: str) -> list[str]:
        return [title for kind, title, _ in self.events if kind == level]


def _service(
    *responses: JobResponse | LintBridgeError,
    settings: dict[str, object] | None = None,
    legacy: bool = False,
) -> tuple[LinterService, FakeJobManager, RecordingNotifier, ConfigStore]:
    jobs = FakeJobManager(*responses)
    notifier = RecordingNotifier()
    store = ConfigStore({"workerBin": sys.executable, **(settings or {})})
    service = LinterService(
        jobs,  # type: ignore[arg-type]
        store,
        notifier=notifier,
        legacy_package_present=lambda: legacy,
    )
    return service, jobs, notifier, store


def _semicolon_result() -> LintMessage:
    return LintMessage(
        severity="error",
        excerpt="Extra semicolon. (semi)",
        location=MessageLocation(file="/p/a.js", position=((0, 3), (0, 4))),
        fix=FixDescriptor(range=(3, 4), text=""),
    )


def _undefined_result() -> LintMessage:
    return LintMessage(
        severity="error",
        excerpt="'foo' is not defined. (no-undef)",
        location=MessageLocation(file="/p/a.js", position=((0, 0), (0, 3))),
        url="https://eslint.org/docs/rules/no-undef",
    )


def test_solutions_for_fix_maps_indices_to_positions() -> None:
    [solution] = solutions_for_fix(FixDescriptor(range=(6, 7), text="'"), 'a = 1\nb = "x"\n')
    assert solution.position == ((1, 4), (1, 5))
    assert solution.to_wire() == {"position": [[1, 4], [1, 5]], "replaceWith": "'"}


def test_first_line_range() -> None:
    assert first_line_range("foo;\nbar") == ((0, 0), (0, 4))
    assert first_line_range("") == ((0, 0), (0, 0))


def test_which_package_will_lint() -> None:
    assert which_package_will_lint(is_incompatible=True, is_overlap=False, legacy_present=True) == "linter-eslint"
    assert which_package_will_lint(is_incompatible=True, is_overlap=False, legacy_present=False) == "(nothing)"
    assert which_package_will_lint(is_incompatible=False, is_overlap=True, legacy_present=True) == "linter-eslint"
    assert which_package_will_lint(is_incompatible=False, is_overlap=True, legacy_present=False) == "lintbridge"
    assert which_package_will_lint(is_incompatible=False, is_overlap=False, legacy_present=True) == "lintbridge"


def test_lint_translates_fixes_into_solutions() -> None:
    response = LintResponse(key="k", results=[_undefined_result(), _semicolon_result()])
    service, jobs, _, _ = _service(response, legacy=True)
    messages = service.lint("/p/a.js", "foo;\n", project_path="/p", is_modified=True)
    assert messages is not None
    assert [message.excerpt for message in messages] == [
        "'foo' is not defined. (no-undef)",
        "Extra semicolon. (semi)",
    ]
    assert messages[0].solutions == []
    assert messages[0].url == "https://eslint.org/docs/rules/no-undef"
    assert messages[1].solutions[0].position == ((0, 3), (0, 4))
    assert messages[1].solutions[0].replace_with == ""
    bundle = jobs.sent[0]
    assert bundle.type is JobType.LINT
    assert bundle.is_modified is True
    assert bundle.legacy_package_present is True
    assert bundle.contents == "foo;\n"
    assert bundle.config == service.config


def test_lint_drops_fixable_messages_before_fix_on_save() -> None:
    service, _, _, _ = _service(LintResponse(key="k", results=[_undefined_result(), _semicolon_result()]))
    messages = service.lint("/p/a.js", "foo;\n", will_auto_fix=True)
    assert messages is not None
    assert [message.excerpt for message in messages] == ["'foo' is not defined. (no-undef)"]


def test_lint_short_circuits() -> None:
    service, jobs, _, _ = _service()
    assert service.lint(None, "x") is None
    remote = service.lint("ftp://host/a.js", "let a;\nlet b;\n")
    assert remote is not None
    assert remote[0].severity == "warning"
    assert remote[0].location.position == ((0, 0), (0, 6))
    service.sleep()
    assert service.lint("/p/a.js", "x") is None
    assert jobs.sent == []


@pytest.mark.parametrize(
    ("fix_count", "expected"),
    [(1, "Applied 1 fix."), (3, "Applied 3 fixes."), (0, "Nothing to fix."), (None, "Nothing to fix.")],
)
def test_fix_reports_how_many_fixes_were_applied(fix_count: int | None, expected: str) -> None:
    service, jobs, notifier, _ = _service(LintResponse(key="k", fix_count=fix_count))
    assert service.fix("/p/a.js", "var a = 1;\n", project_path="/p") == (fix_count or 0)
    assert notifier.titles("success") == [expected]
    assert jobs.sent[0].type is JobType.FIX
    assert jobs.sent[0].is_modified is False


def test_fix_on_save_is_silent_and_empty_files_are_skipped() -> None:
    service, jobs, notifier, _ = _service(LintResponse(key="k", fix_count=2))
    assert service.fix("/p/a.js", "var a;", is_save=True) == 2
    assert service.fix("/p/a.js", "") is None
    assert len(jobs.sent) == 1
    assert notifier.events == []


def test_fix_on_modified_buffer_warns_and_wakes_temporarily() -> None:
    service, jobs, notifier, _ = _service(LintResponse(key="k", fix_count=0))
    service.sleep()
    service.fix("/p/a.js", "a;", is_modified=True)
    assert notifier.titles("error") == ["lintbridge: Please save before fixing."]
    assert len(jobs.sent) == 1
    assert service.inactive is True


def test_invalid_worker_notifies_once_and_sleeps() -> None:
    service, jobs, notifier, _ = _service(InvalidWorkerError("nope"), InvalidWorkerError("nope"))
    assert service.lint("/p/a.js", "x") is None
    assert service.inactive is True
    assert jobs.suspended == 1
    service.wake()
    assert service.lint("/p/a.js", "x") is None
    assert notifier.titles("error") == ["lintbridge: Invalid worker runtime path"]


def test_config_not_found_sleeps_when_configured() -> None:
    error = JobError(ErrorKind.CONFIG_NOT_FOUND, "No ESLint configuration found in /p.")
    service, _, notifier, _ = _service(error)
    assert service.lint("/p/a.js", "x") == []
    assert service.inactive is True
    assert notifier.events == []


def test_config_not_found_becomes_a_lint_message_or_notification() -> None:
    error = JobError(ErrorKind.CONFIG_NOT_FOUND, "No ESLint configuration found in /p.")
    settings = {"disabling": {"disableWhenNoEslintConfig": False}}
    service, _, notifier, _ = _service(error, error, settings=settings)

    messages = service.lint("/p/a.js", "const value = 1;\nmore\n")
    assert messages is not None
    assert messages[0].excerpt == CONFIG_NOT_FOUND_EXCERPT
    assert messages[0].location.position == ((0, 0), (0, 16))
    assert service.inactive is False

    service.fix("/p/a.js", "const value = 1;\n")
    assert notifier.events == [("error", "lintbridge: No .eslintrc found", "No ESLint configuration found in /p.")]


@pytest.mark.parametrize("kind", [ErrorKind.NO_PROJECT, ErrorKind.VERSION_OVERLAP])
def test_quiet_failures_put_the_service_to_sleep(kind: ErrorKind) -> None:
    service, _, notifier, _ = _service(JobError(kind, "skip"))
    assert service.lint("/p/a.js", "x") is None
    assert service.inactive is True
    assert notifier.events == []


def test_incompatible_version_warns_once_per_session() -> None:
    error = JobError(ErrorKind.INCOMPATIBLE_VERSION, "old", version="6.9.9")
    service, _, notifier, _ = _service(error, error)
    service.lint("/p/a.js", "x")
    service.wake()
    service.lint("/p/a.js", "x")
    assert notifier.titles("warning") == ["lintbridge: Incompatible ESLint"]
    assert "6.9.9" in str(notifier.events[0][2])
    assert service.inactive is True


@pytest.mark.parametrize(("settings", "legacy"), [({}, True), ({"warnAboutOldEslint": False}, False)])
def test_incompatible_version_can_stay_silent(settings: dict[str, object], legacy: bool) -> None:
    error = JobError(ErrorKind.INCOMPATIBLE_VERSION, "old", version="6.9.9")
    service, _, notifier, _ = _service(error, settings=settings, legacy=legacy)
    service.lint("/p/a.js", "x")
    assert notifier.events == []
    assert service.inactive is True


def test_unknown_errors_are_notified() -> None:
    service, _, notifier, _ = _service(WorkerKilledError("gone"))
    assert service.lint("/p/a.js", "x") is None
    assert notifier.events == [("error", "lintbridge Error", "gone")]
    assert service.inactive is False


def test_should_auto_fix() -> None:
    service, _, _, _ = _service(settings={"autofix": {"fixOnSave": True}})
    assert service.should_auto_fix(is_modified=False, scopes=("source.js",))
    assert not service.should_auto_fix(is_modified=True)
    assert not service.should_auto_fix(is_modified=False, scopes=("source.python",))
    service.sleep()
    assert not service.should_auto_fix(is_modified=False)


def test_debug_report() -> None:
    response = DebugResponse(key="k", eslint_path="/p/node_modules/eslint", eslint_version="7.5.0", is_overlap=True, worker_pid=99)
    service, jobs, notifier, _ = _service(response)
    report = service.debug("/p/a.js", "/p")
    assert report is not None
    assert report.eslint_version == "7.5.0"
    assert report.is_overlap is False
    assert report.which_package_will_lint == "lintbridge"
    assert report.worker_pid == 99
    assert report.config["workerBin"] == sys.executable
    assert jobs.sent[0].type is JobType.DEBUG
    assert notifier.titles("info") == ["lintbridge debug information"]
    assert "ESLint location: /p/node_modules/eslint" in str(notifier.events[0][2])


def test_debug_with_invalid_worker_uses_placeholders() -> None:
    service, _, _, _ = _service(InvalidWorkerError("nope"))
    service.sleep()
    report = service.debug("/p/a.js", "/p")
    assert report is not None
    assert report.eslint_path == "(unknown)"
    assert report.worker_pid is None
    assert service.inactive is True


def test_config_change_wakes_and_clears_cache() -> None:
    service, jobs, _, store = _service()
    service.sleep()
    store.set_settings({"workerBin": sys.executable, "advanced": {"disableEslintIgnore": True}})
    assert service.inactive is False
    assert [bundle.type for bundle in jobs.sent] == [JobType.CLEAR_CACHE]


def test_worker_bin_change_revalidates(tmp_path: Path) -> None:
    validator = BinaryValidator()
    jobs = FakeJobManager()
    notifier = RecordingNotifier()
    store = ConfigStore({"workerBin": sys.executable})
    service = LinterService(jobs, store, notifier=notifier, validator=validator)  # type: ignore[arg-type]
    try:
        store.set_settings({"workerBin": str(tmp_path / "missing-python")})
        assert jobs.suspended >= 1
        assert notifier.errored.wait(timeout=10)
        assert service.inactive is True
        assert notifier.titles("error") == ["lintbridge: Invalid worker runtime path"]
    finally:
        validator.shutdown()


def test_dispose_unsubscribes_and_disposes_manager() -> None:
    service, jobs, _, store = _service()
    service.dispose()
    assert jobs.disposed is True
    service.sleep()
    store.set_settings({"workerBin": sys.executable, "nodeBin": "/opt/node/bin/node"})
    assert service.inactive is True


def test_service_accepts_a_real_job_manager() -> None:
    store = ConfigStore({"workerBin": sys.executable})
    service = LinterService(JobManager(store.get), store, notifier=RecordingNotifier())
    service.dispose()
