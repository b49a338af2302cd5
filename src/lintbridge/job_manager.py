# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Create, supervise and multiplex requests over the lint worker subprocess."""

from __future__ import annotations

import logging
import secrets

# Bandit: the worker command is built from the validated runtime binary and a
# fixed module path; no shell is involved.
import subprocess  # nosec B404
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import IO, Final

from pydantic import ValidationError

from .binary import BinaryValidator
from .config.models import LinterConfig
from .constants import KEY_BYTES, WORKER_MODULE
from .errors import (
    InvalidWorkerError,
    JobError,
    JobTimeoutError,
    LintBridgeError,
    ProtocolViolationError,
    WorkerKilledError,
    WorkerSpawnError,
    WorkerUnknownError,
)
from .protocol import JobBundle, JobResponse, encode_line, is_ready_signal, iter_messages, parse_response

LOGGER = logging.getLogger(__name__)

ConfigProvider = Callable[[], LinterConfig]
UnknownErrorHandler = Callable[[LintBridgeError], None]

_DEFAULT_WORKER_ARGS: Final[tuple[str, ...]] = ("-m", WORKER_MODULE)


class WorkerState(str, Enum):
    """Lifecycle of the worker subprocess."""

    ABSENT = "absent"
    STARTING = "starting"
    READY = "ready"
    SUSPENDING = "suspending"


def generate_key() -> str:
    """Return a short random hex correlation key."""

    return secrets.token_hex(KEY_BYTES)


def _settle(future: Future[object], *, result: object = None, error: BaseException | None = None) -> None:
    try:
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)
    except InvalidStateError:
        LOGGER.debug("Future already settled")


def _log_unknown_error(error: LintBridgeError) -> None:
    LOGGER.error("Unattributable worker error: %s (%r)", error, getattr(error, "payload", None))


@dataclass(slots=True)
class _PendingJob:
    future: Future[JobResponse]
    process: subprocess.Popen[str]


class JobManager:
    """Own the worker subprocess and correlate responses with requests by key.

    Bundles are written to the worker's stdin in the order :meth:`submit` is
    called. Responses may arrive in any order; only the ``key`` links a
    response to its waiter. A single worker creation may be in flight at a
    time and every concurrent caller waits on it.
    """

    def __init__(
        self,
        config: ConfigProvider | LinterConfig | None = None,
        *,
        validator: BinaryValidator | None = None,
        worker_args: Sequence[str] = _DEFAULT_WORKER_ARGS,
        on_unknown_error: UnknownErrorHandler | None = None,
    ) -> None:
        if config is None:
            config = LinterConfig()
        if isinstance(config, LinterConfig):
            snapshot = config
            self._config: ConfigProvider = lambda: snapshot
        else:
            self._config = config
        self._validator = validator or BinaryValidator()
        self._worker_args = tuple(worker_args)
        self._on_unknown_error = on_unknown_error or _log_unknown_error
        self._lock = threading.RLock()
        self._handlers: dict[str, _PendingJob] = {}
        self._process: subprocess.Popen[str] | None = None
        self._state = WorkerState.ABSENT
        self._worker_future: Future[None] | None = None
        self._killing_future: Future[None] | None = None
        self._disposed = False

    @property
    def state(self) -> WorkerState:
        with self._lock:
            return self._state

    @property
    def worker_pid(self) -> int | None:
        with self._lock:
            return self._process.pid if self._process is not None else None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def dispose(self) -> None:
        """Kill the worker and fail every pending job; the manager is unusable afterwards."""

        self.suspend().result()
        with self._lock:
            self._disposed = True

    # Lifecycle -----------------------------------------------------------------

    def create_worker(self) -> Future[None]:
        """Spawn the worker, returning a future that resolves once it signals readiness.

        Readiness is the explicit ``{"type": "ready"}`` line on the worker's
        stdout. Concurrent callers receive the same in-flight future.

        Raises:
            InvalidWorkerError: If the configured worker binary cannot be run;
                nothing is spawned in that case.
        """

        with self._lock:
            existing = self._current_creation()
            if existing is not None:
                return existing

        config = self._config()
        worker_bin = config.worker_bin
        # Probe outside the lock: it can block for seconds.
        is_valid = bool(self._validator.validate_sync(worker_bin))

        with self._lock:
            existing = self._current_creation()
            if existing is not None:
                return existing

            LOGGER.debug("JobManager creating worker with %s", worker_bin)
            if self._process is not None:
                self._kill(self._process, "Worker replaced")
                self._process = None

            if not is_valid:
                self._state = WorkerState.ABSENT
                raise InvalidWorkerError(worker_bin)

            future: Future[None] = Future()
            try:
                process = subprocess.Popen(  # nosec B603 - argument list, no shell
                    self._worker_command(config),
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except OSError as exc:
                self._state = WorkerState.ABSENT
                future.set_exception(WorkerSpawnError(f"Unable to spawn worker: {exc}"))
                return future

            self._process = process
            self._state = WorkerState.STARTING
            self._worker_future = future

        threading.Thread(
            target=self._read_stdout,
            args=(process, future),
            name=f"lintbridge-stdout-{process.pid}",
            daemon=True,
        ).start()
        threading.Thread(
            target=self._read_stderr,
            args=(process,),
            name=f"lintbridge-stderr-{process.pid}",
            daemon=True,
        ).start()
        return future

    def _current_creation(self) -> Future[None] | None:
        """Return the in-flight creation, a settled future for a live worker, or ``None``."""

        if self._worker_future is not None:
            return self._worker_future
        if self._state is WorkerState.READY and self._is_alive(self._process):
            ready: Future[None] = Future()
            ready.set_result(None)
            return ready
        return None

    def suspend(self) -> Future[None]:
        """Terminate the worker once any in-flight creation settles.

        Safe to call when no worker exists. Every job pending on the worker
        fails with :class:`WorkerKilledError`.

        Returns:
            Future[None]: Resolves once the worker is gone.
        """

        LOGGER.debug("Suspending worker")
        with self._lock:
            if self._killing_future is not None:
                return self._killing_future
            killing: Future[None] = Future()
            self._killing_future = killing
            creating = self._worker_future
            if self._process is not None:
                self._state = WorkerState.SUSPENDING
        if creating is None:
            self._finish_suspend(killing)
        else:
            creating.add_done_callback(partial(self._finish_suspend_after, killing))
        return killing

    def _finish_suspend_after(self, killing: Future[None], _creation: Future[None]) -> None:
        self._finish_suspend(killing)

    def _finish_suspend(self, killing: Future[None]) -> None:
        with self._lock:
            process = self._process
            self._process = None
            self._state = WorkerState.ABSENT
            if process is not None:
                self._kill(process, "Worker was killed before the job completed")
            self._killing_future = None
        _settle(killing)

    def _abort_creation(self, error: LintBridgeError) -> None:
        with self._lock:
            creating = self._worker_future
            self._worker_future = None
            process = self._process
            self._process = None
            self._state = WorkerState.ABSENT
            if process is not None:
                self._kill(process, "Worker aborted during startup")
        if creating is not None:
            _settle(creating, error=error)

    # Sending -------------------------------------------------------------------

    def submit(self, bundle: JobBundle | Mapping[str, object]) -> Future[JobResponse]:
        """Write ``bundle`` to the worker and return a future for its response.

        Waits for an in-progress suspend, then lazily creates the worker.

        Raises:
            InvalidWorkerError: If the worker binary is invalid.
            WorkerSpawnError: If the worker could not be started.
            WorkerKilledError: If the worker died before the bundle was written.
        """

        if self._disposed:
            raise WorkerKilledError("JobManager has been disposed")
        job = bundle if isinstance(bundle, JobBundle) else JobBundle.model_validate(bundle)

        killing = self._killing_future
        if killing is not None:
            LOGGER.debug("Waiting for worker to be killed")
            killing.result()

        with self._lock:
            needs_worker = self._state is not WorkerState.READY or not self._is_alive(self._process)
        if needs_worker:
            LOGGER.debug("Creating worker")
            start_timeout = self._config().worker_start_timeout
            try:
                self.create_worker().result(timeout=start_timeout)
            except FutureTimeoutError as exc:
                error = WorkerSpawnError(f"Worker did not become ready within {start_timeout:.1f}s")
                self._abort_creation(error)
                raise error from exc

        key = generate_key()
        job = job.with_key(key)
        future: Future[JobResponse] = Future()
        with self._lock:
            process = self._process
            if process is None or process.stdin is None or not self._is_alive(process):
                raise WorkerKilledError("Worker is dead")
            self._handlers[key] = _PendingJob(future=future, process=process)
            LOGGER.debug("JobManager#send: key=%s type=%s", key, job.type.value)
            try:
                process.stdin.write(encode_line(job))
                process.stdin.flush()
            except (OSError, ValueError) as exc:
                del self._handlers[key]
                raise WorkerKilledError(f"Unable to write to worker: {exc}") from exc
        return future

    def send(self, bundle: JobBundle | Mapping[str, object], *, timeout: float | None = None) -> JobResponse:
        """Send ``bundle`` and block until its response arrives.

        Args:
            bundle: Job to run.
            timeout: Seconds to wait for the response; falls back to the
                configured ``job_timeout``. With neither set the call waits
                until the worker answers or dies.

        Returns:
            JobResponse: Typed response for the job.

        Raises:
            JobError: The worker reported a typed failure for this job.
            JobTimeoutError: No response arrived in time; the job is abandoned.
        """

        effective = timeout if timeout is not None else self._config().job_timeout
        future = self.submit(bundle)
        try:
            return future.result(timeout=effective)
        except FutureTimeoutError as exc:
            key = self._abandon(future)
            raise JobTimeoutError(key or "<unknown>", effective or 0.0) from exc

    def _abandon(self, future: Future[JobResponse]) -> str | None:
        with self._lock:
            for key, pending in self._handlers.items():
                if pending.future is future:
                    del self._handlers[key]
                    return key
        return None

    # Incoming ------------------------------------------------------------------

    def receive_message(self, message: Mapping[str, object]) -> None:
        """Route one decoded stdout object to its waiter.

        ``log`` lines are re-logged locally; keyed lines settle and remove the
        matching pending job; lines for unknown keys are dropped.
        """

        if "log" in message:
            LOGGER.debug("WORKER LOG: %s", message["log"])
            return
        key = message.get("key")
        if not key:
            error = ProtocolViolationError("Received message from worker without key", dict(message))
            LOGGER.error("%s: %r", error, message)
            self._on_unknown_error(error)
            return
        with self._lock:
            pending = self._handlers.pop(str(key), None)
        if pending is None:
            LOGGER.debug("Dropping response for unknown job %s", key)
            return
        if message.get("error"):
            _settle(pending.future, error=JobError.from_payload(message))
            return
        try:
            response = parse_response(message)
        except ValidationError as exc:
            _settle(pending.future, error=ProtocolViolationError(f"Malformed response for job {key}: {exc}", message))
            return
        _settle(pending.future, result=response)

    def receive_error(self, message: Mapping[str, object]) -> None:
        """Route one decoded stderr object; keyless errors escalate process-wide."""

        key = message.get("key")
        if not key:
            self._on_unknown_error(WorkerUnknownError(dict(message)))
            return
        with self._lock:
            pending = self._handlers.pop(str(key), None)
        if pending is None:
            return
        _settle(pending.future, error=JobError.from_payload(message))

    # Internals -----------------------------------------------------------------

    def _worker_command(self, config: LinterConfig) -> list[str]:
        command = [config.worker_bin, *self._worker_args]
        if self._worker_args == _DEFAULT_WORKER_ARGS:
            command.extend(["--threads", str(config.worker_threads)])
        return command

    @staticmethod
    def _is_alive(process: subprocess.Popen[str] | None) -> bool:
        return process is not None and process.poll() is None

    def _read_stdout(self, process: subprocess.Popen[str], ready: Future[None]) -> None:
        stream: IO[str] | None = process.stdout
        if stream is not None:
            for message in iter_messages(stream, on_malformed=self._log_malformed):
                if not ready.done() and is_ready_signal(message):
                    self._mark_ready(process, ready)
                    continue
                self.receive_message(message)
        self._handle_exit(process, ready)

    def _read_stderr(self, process: subprocess.Popen[str]) -> None:
        stream: IO[str] | None = process.stderr
        if stream is None:
            return
        for message in iter_messages(stream, on_malformed=self._log_malformed):
            self.receive_error(message)

    @staticmethod
    def _log_malformed(line: str) -> None:
        LOGGER.warning("Ignoring malformed worker output: %s", line)

    def _mark_ready(self, process: subprocess.Popen[str], ready: Future[None]) -> None:
        with self._lock:
            if self._process is process and self._state is WorkerState.STARTING:
                self._state = WorkerState.READY
            if self._worker_future is ready:
                self._worker_future = None
        _settle(ready)

    def _handle_exit(self, process: subprocess.Popen[str], ready: Future[None]) -> None:
        returncode = process.wait()
        LOGGER.debug("Worker %s exited with status %s", process.pid, returncode)
        with self._lock:
            if self._worker_future is ready:
                self._worker_future = None
            if self._process is process:
                self._process = None
                self._state = WorkerState.ABSENT
            orphaned = self._pop_jobs_for(process)
        if not ready.done():
            _settle(ready, error=WorkerSpawnError(f"Worker exited with status {returncode} before it was ready"))
        for pending in orphaned:
            _settle(pending.future, error=WorkerKilledError(f"Worker exited with status {returncode}"))

    def _pop_jobs_for(self, process: subprocess.Popen[str]) -> list[_PendingJob]:
        keys = [key for key, pending in self._handlers.items() if pending.process is process]
        return [self._handlers.pop(key) for key in keys]

    def _kill(self, process: subprocess.Popen[str], reason: str) -> None:
        for pending in self._pop_jobs_for(process):
            _settle(pending.future, error=WorkerKilledError(reason))
        if process.poll() is not None:
            return
        try:
            if process.stdin is not None:
                process.stdin.close()
        except OSError:
            LOGGER.debug("Worker stdin already closed")
        process.terminate()


__all__ = ["JobManager", "WorkerState", "generate_key"]
