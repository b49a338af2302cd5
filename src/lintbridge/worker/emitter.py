# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Thread-safe writers for the worker's stdout and stderr protocol channels."""

from __future__ import annotations

from threading import Lock
from typing import TextIO

from ..protocol import WireMessage, encode_line


class Emitter:
    """Write one JSON object per line; stdout carries responses, stderr unplanned errors."""

    def __init__(self, stdout: TextIO, stderr: TextIO) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._lock = Lock()

    def emit(self, message: WireMessage) -> None:
        self._write(self._stdout, message)

    def emit_error(self, message: WireMessage) -> None:
        self._write(self._stderr, message)

    def log(self, text: str) -> None:
        self.emit({"log": text})

    def _write(self, stream: TextIO, message: WireMessage) -> None:
        line = encode_line(message)
        with self._lock:
            stream.write(line)
            stream.flush()


__all__ = ["Emitter"]
