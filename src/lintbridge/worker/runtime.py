# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Worker main loop: read job bundles from stdin and answer on stdout."""

from __future__ import annotations

import io
import logging
import sys
import threading
import traceback
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Annotated, TextIO

import typer

from ..protocol import READY_MESSAGE, iter_messages
from .dispatcher import WorkerDispatcher
from .emitter import Emitter

DispatcherFactory = Callable[[Emitter], WorkerDispatcher]

_PACKAGE_LOGGER = "lintbridge"
_MALFORMED_PREVIEW = 200


class ProtocolLogHandler(logging.Handler):
    """Forward log records to the job manager as ``{"log": ...}`` lines."""

    def __init__(self, emitter: Emitter, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._emitter = emitter

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._emitter.log(self.format(record))
        except (OSError, ValueError):
            self.handleError(record)


def _uncaught_payload(exc: BaseException) -> dict[str, object]:
    return {
        "error": "Unknown error",
        "uncaught": True,
        "message": str(exc),
        "name": type(exc).__name__,
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }


def _report_uncaught(emitter: Emitter, future: Future[None]) -> None:
    exc = future.exception()
    if exc is not None:
        emitter.emit_error(_uncaught_payload(exc))


def run_worker(
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
    *,
    dispatcher_factory: DispatcherFactory | None = None,
    max_workers: int = 4,
) -> int:
    """Serve job bundles until ``stdin`` closes.

    The ready signal is written before the first line is read. Each bundle is
    handled on a thread pool so quick jobs are not stuck behind slow ones;
    replies are correlated by key, not by order.

    Args:
        stdin: Source of newline-delimited job bundles.
        stdout: Channel for responses, typed failures and log lines.
        stderr: Channel for failures the dispatcher did not anticipate.
        dispatcher_factory: Builds the dispatcher around the emitter.
        max_workers: Number of jobs processed concurrently.

    Returns:
        int: Process exit status.
    """

    emitter = Emitter(stdout, stderr)
    dispatcher = (dispatcher_factory or WorkerDispatcher)(emitter)
    handler = ProtocolLogHandler(emitter)
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.addHandler(handler)
    previous_level = package_logger.level
    if previous_level == logging.NOTSET or previous_level > logging.INFO:
        package_logger.setLevel(logging.INFO)
    previous_hook = threading.excepthook
    threading.excepthook = lambda args: emitter.emit_error(_uncaught_payload(args.exc_value or Exception()))

    def _log_malformed(line: str) -> None:
        emitter.log(f"Ignoring malformed job line: {line[:_MALFORMED_PREVIEW]}")

    try:
        emitter.emit(READY_MESSAGE)
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lintbridge-job") as pool:
            for payload in iter_messages(stdin, on_malformed=_log_malformed):
                future = pool.submit(dispatcher.process_message, payload)
                future.add_done_callback(partial(_report_uncaught, emitter))
    finally:
        threading.excepthook = previous_hook
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
    return 0


def use_utf8_stdio() -> None:
    """Switch the standard streams to UTF-8, the encoding the job manager writes."""

    for stream in (sys.stdin, sys.stdout, sys.stderr):
        if isinstance(stream, io.TextIOWrapper):
            stream.reconfigure(encoding="utf-8", errors="replace")


def main(
    threads: Annotated[int, typer.Option("--threads", min=1, help="Jobs processed concurrently.")] = 4,
) -> None:
    """Run the lintbridge worker on standard input and output."""

    use_utf8_stdio()
    raise typer.Exit(code=run_worker(sys.stdin, sys.stdout, sys.stderr, max_workers=threads))


__all__ = ["DispatcherFactory", "ProtocolLogHandler", "main", "run_worker", "use_utf8_stdio"]
