# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Validate runtime executables without probing the same candidate twice."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial
from threading import Lock

from .constants import VERSION_FLAG
from .errors import InvalidBinaryError
from .process import CommandOptions, SubprocessExecutionError, resolve_executable, run_command

LOGGER = logging.getLogger(__name__)

_DEFAULT_PROBE_TIMEOUT = 10.0


class BinaryValidator:
    """Decide whether a runtime executable can be invoked, caching good results.

    Successful probes are cached for the lifetime of the validator; failures are
    never cached so a later retry (for example after the user fixes ``PATH``)
    can succeed. Concurrent asynchronous validations of one candidate share a
    single probe.
    """

    def __init__(self, *, executor: Executor | None = None, timeout: float | None = _DEFAULT_PROBE_TIMEOUT) -> None:
        self._known_good: dict[str, str] = {}
        self._pending: dict[str, Future[str]] = {}
        self._lock = Lock()
        self._timeout = timeout
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="lintbridge-probe")

    def known_version(self, candidate: str) -> str | None:
        """Return the cached version output for ``candidate`` if it was validated."""

        with self._lock:
            return self._known_good.get(candidate)

    def validate_async(self, candidate: str) -> Future[str]:
        """Return a future resolving to the version output of ``candidate``.

        Args:
            candidate: Executable name or path to probe.

        Returns:
            Future[str]: Resolves with the version string, or fails with
            :class:`InvalidBinaryError`.
        """

        with self._lock:
            cached = self._known_good.get(candidate)
            if cached is not None:
                done: Future[str] = Future()
                done.set_result(cached)
                return done
            pending = self._pending.get(candidate)
            if pending is not None:
                return pending
            future = self._executor.submit(self._probe, candidate)
            self._pending[candidate] = future
        future.add_done_callback(partial(self._forget_pending, candidate))
        return future

    def validate_sync(self, candidate: str) -> str | None:
        """Probe ``candidate`` in the calling thread.

        Returns:
            str | None: Version output when the executable runs, otherwise ``None``.
        """

        with self._lock:
            cached = self._known_good.get(candidate)
            pending = self._pending.get(candidate)
        if cached is not None:
            return cached
        try:
            if pending is not None:
                return pending.result()
            return self._probe(candidate)
        except InvalidBinaryError as exc:
            LOGGER.debug("Binary validation failed: %s", exc)
            return None

    def resolve_absolute_path(self, candidate: str) -> str:
        """Return an absolute path for ``candidate``.

        Raises:
            InvalidBinaryError: When ``candidate`` is not found on the search path.
        """

        resolved = resolve_executable(candidate)
        if resolved is None:
            raise InvalidBinaryError(candidate, "not found on PATH")
        return resolved

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _probe(self, candidate: str) -> str:
        LOGGER.debug("Probing runtime binary %s", candidate)
        try:
            completed = run_command(
                [candidate, VERSION_FLAG],
                options=CommandOptions(timeout=self._timeout),
            )
        except (OSError, ValueError, SubprocessExecutionError) as exc:
            raise InvalidBinaryError(candidate, str(exc)) from exc
        version = completed.stdout.strip() or completed.stderr.strip()
        with self._lock:
            self._known_good[candidate] = version
        return version

    def _forget_pending(self, candidate: str, future: Future[str]) -> None:
        with self._lock:
            if self._pending.get(candidate) is future:
                del self._pending[candidate]


__all__ = ["BinaryValidator"]
