# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution."""

from __future__ import annotations

import shutil

# Bandit: subprocess usage is intentional; we wrap runtime probes and engine
# invocations, normalising arguments and disabling ``shell=True``.
import subprocess  # nosec B404
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from subprocess import CompletedProcess

from .constants import TIMEOUT_RETURN_CODE


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Immutable command execution options.

    Attributes:
        cwd: Working directory passed to the child; the parent's cwd is never changed.
        env: Complete environment for the child, ``None`` to inherit.
        check: Raise :class:`SubprocessExecutionError` on a non-zero exit status.
        capture_output: Capture stdout and stderr as text.
        timeout: Seconds before the child is killed, ``None`` to wait indefinitely.
        input_text: Text written to the child's standard input.
        discard_stdin: Attach ``/dev/null`` to stdin when no input is supplied.
    """

    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    check: bool = True
    capture_output: bool = True
    timeout: float | None = None
    input_text: str | None = None
    discard_stdin: bool = True


class SubprocessExecutionError(RuntimeError):
    """Raised when a subprocess exits with a non-zero status while ``check`` is true."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str | None,
        stderr: str | None,
    ) -> None:
        super().__init__(
            f"Command '{command[0]}' exited with status {returncode}. stderr: {stderr or '<none>'}",
        )
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def _ensure_text(value: str | bytes | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.decode(errors="ignore")


def resolve_executable(candidate: str) -> str | None:
    """Return an absolute path for ``candidate`` or ``None`` when it cannot be found.

    Absolute paths that exist are returned unchanged; anything else is looked up
    on the executable search path.
    """

    path = Path(candidate)
    if path.is_absolute() and path.exists():
        return str(path)
    return shutil.which(candidate)


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Normalise the subprocess argument sequence.

    Raises:
        ValueError: If no arguments are provided.
        FileNotFoundError: If the executable cannot be resolved.
    """

    if not args:
        raise ValueError("subprocess command requires at least one argument")

    head, *rest = args
    resolved = resolve_executable(head)
    if resolved is None:
        raise FileNotFoundError(f"Executable '{head}' was not found on PATH")
    return [resolved, *rest]


def run_command(args: Sequence[str], *, options: CommandOptions | None = None) -> CompletedProcess[str]:
    """Execute ``args`` after normalising the executable path.

    Args:
        args: Command and argument sequence to execute.
        options: Options configuring execution semantics.

    Returns:
        CompletedProcess: Subprocess execution metadata with text output.

    Raises:
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
        SubprocessExecutionError: When ``check`` is true and the process exits
            with a non-zero status.
    """

    normalized = _normalize_args(args)
    resolved = options or CommandOptions()
    stdin = None
    if resolved.input_text is None and resolved.discard_stdin:
        stdin = subprocess.DEVNULL

    try:
        completed: CompletedProcess[str] = subprocess.run(  # nosec B603 - argument list, no shell
            normalized,
            cwd=str(resolved.cwd) if resolved.cwd is not None else None,
            env=dict(resolved.env) if resolved.env is not None else None,
            check=False,
            capture_output=resolved.capture_output,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=resolved.timeout,
            input=resolved.input_text,
            stdin=stdin,
        )
    except subprocess.TimeoutExpired as exc:
        stderr = _ensure_text(exc.stderr)
        timeout_msg = f"Command timed out after {resolved.timeout:.1f}s"
        completed = subprocess.CompletedProcess(
            args=normalized,
            returncode=TIMEOUT_RETURN_CODE,
            stdout=_ensure_text(exc.stdout) or "",
            stderr=f"{stderr}\n{timeout_msg}" if stderr else timeout_msg,
        )

    if resolved.check and completed.returncode != 0:
        raise SubprocessExecutionError(normalized, completed.returncode, completed.stdout, completed.stderr)

    return completed


__all__ = [
    "CommandOptions",
    "SubprocessExecutionError",
    "resolve_executable",
    "run_command",
]
