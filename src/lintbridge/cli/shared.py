# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared utilities for CLI commands (logging, errors, session wiring)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..binary import BinaryValidator
from ..config import ConfigError, ConfigStore, load_settings
from ..job_manager import JobManager
from ..logging import fail as core_fail
from ..logging import ok as core_ok
from ..logging import warn as core_warn
from ..service import ConsoleNotifier, LinterService
from ..worker.cwd import descends_from


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Adapter around project logging helpers respecting CLI emoji settings."""

    console: Console
    use_emoji: bool
    debug_enabled: bool = False

    def fail(self, message: str) -> None:
        core_fail(message, use_emoji=self.use_emoji)

    def warn(self, message: str) -> None:
        core_warn(message, use_emoji=self.use_emoji)

    def ok(self, message: str) -> None:
        core_ok(message, use_emoji=self.use_emoji)

    def echo(self, message: str) -> None:
        """Write ``message`` to stdout using Typer's echo helper."""

        typer.echo(message)

    def debug(self, message: str) -> None:
        if self.debug_enabled:
            self.console.print(f"[bold cyan]\\[debug][/] [dim]{message}[/]")


def build_cli_logger(*, emoji: bool, debug: bool = False, no_color: bool = False) -> CLILogger:
    """Return a ``CLILogger`` and route library logging to stderr when ``debug`` is set.

    Args:
        emoji: Whether log output may include emoji glyphs.
        debug: Whether debug logging should be enabled.
        no_color: Whether terminal colour output should be disabled.

    Returns:
        CLILogger: Logger instance bound to a dedicated Rich console.
    """

    console = Console(no_color=no_color, highlight=False, stderr=True)
    if debug:
        package_logger = logging.getLogger("lintbridge")
        package_logger.setLevel(logging.DEBUG)
        if not any(isinstance(handler, RichHandler) for handler in package_logger.handlers):
            package_logger.addHandler(RichHandler(console=console, show_path=False))
    return CLILogger(console=console, use_emoji=emoji, debug_enabled=debug)


@dataclass(slots=True)
class CLISession:
    """Service graph backing one CLI invocation."""

    logger: CLILogger
    store: ConfigStore
    service: LinterService
    validator: BinaryValidator

    def close(self) -> None:
        self.service.dispose()
        self.validator.shutdown()


def project_for(path: Path | None, project: Path | None) -> Path | None:
    """Return the project root for ``path``: the explicit one, else the cwd when it contains ``path``."""

    if project is not None:
        return project.resolve()
    cwd = Path.cwd()
    if path is not None and descends_from(path.resolve(), cwd):
        return cwd
    return None


def open_session(
    *,
    settings: Path | None,
    project: Path | None,
    emoji: bool,
    debug: bool,
) -> CLISession:
    """Load configuration and build the job manager and service.

    Raises:
        CLIError: If the settings or override file is invalid.
    """

    logger = build_cli_logger(emoji=emoji, debug=debug)
    try:
        store = ConfigStore(load_settings(settings), project_roots=[project] if project is not None else [])
    except ConfigError as exc:
        logger.fail(str(exc))
        raise CLIError(str(exc)) from exc
    if store.override_file is not None:
        logger.debug(f"override={store.override_file}")
    validator = BinaryValidator()
    manager = JobManager(store.get, validator=validator)
    service = LinterService(
        manager,
        store,
        notifier=ConsoleNotifier(use_emoji=emoji),
        validator=validator,
    )
    return CLISession(logger=logger, store=store, service=service, validator=validator)


__all__ = [
    "CLIError",
    "CLILogger",
    "CLISession",
    "build_cli_logger",
    "open_session",
    "project_for",
]
