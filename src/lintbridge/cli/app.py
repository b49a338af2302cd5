# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring the lint, fix, debug and worker commands."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from ..errors import LintBridgeError
from ..service import EditorMessage
from ..worker.runtime import run_worker, use_utf8_stdio
from .shared import CLIError, CLISession, open_session, project_for

app = typer.Typer(
    name="lintbridge",
    help="Run ESLint through a long-lived worker process.",
    no_args_is_help=True,
    add_completion=False,
)

FileArgument = Annotated[
    Path,
    typer.Argument(exists=True, dir_okay=False, resolve_path=True, help="File to process."),
]
ProjectOption = Annotated[
    Path | None,
    typer.Option("--project", file_okay=False, help="Project root; defaults to the cwd when it contains the file."),
]
SettingsOption = Annotated[
    Path | None,
    typer.Option("--settings", dir_okay=False, help="TOML settings file ([tool.lintbridge] or top-level keys)."),
]
EmojiOption = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Decorate output with emoji.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Log worker traffic to stderr.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print machine-readable JSON.")]


def _session(*, settings: Path | None, project: Path | None, emoji: bool, debug: bool) -> CLISession:
    try:
        return open_session(settings=settings, project=project, emoji=emoji, debug=debug)
    except CLIError as exc:
        raise typer.Exit(code=exc.exit_code) from exc


def _read(path: Path) -> str:
    try:
        with path.open(encoding="utf-8", newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise CLIError(f"Unable to read {path}: {exc}") from exc


def _render(messages: list[EditorMessage]) -> list[str]:
    lines = []
    for message in messages:
        row, column = message.location.position[0]
        lines.append(f"{message.location.file}:{row + 1}:{column + 1} {message.severity} {message.excerpt}")
    return lines


@app.command("lint")
def lint_command(
    path: FileArgument,
    project: ProjectOption = None,
    settings: SettingsOption = None,
    emoji: EmojiOption = True,
    debug: DebugOption = False,
    json_output: JsonOption = False,
) -> None:
    """Lint PATH and print its diagnostics; exits 1 when errors were reported."""

    session = _session(settings=settings, project=project, emoji=emoji, debug=debug)
    root = project_for(path, project)
    try:
        messages = session.service.lint(
            str(path),
            _read(path),
            project_path=str(root) if root is not None else None,
        )
    except CLIError as exc:
        session.logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    finally:
        session.close()

    messages = messages or []
    if json_output:
        typer.echo(json.dumps([message.to_wire() for message in messages], indent=2))
    else:
        for line in _render(messages):
            typer.echo(line)
    raise typer.Exit(code=1 if any(message.severity == "error" for message in messages) else 0)


@app.command("fix")
def fix_command(
    path: FileArgument,
    project: ProjectOption = None,
    settings: SettingsOption = None,
    emoji: EmojiOption = True,
    debug: DebugOption = False,
) -> None:
    """Apply ESLint fixes to PATH in place."""

    session = _session(settings=settings, project=project, emoji=emoji, debug=debug)
    root = project_for(path, project)
    try:
        contents = _read(path)
        fixes = session.service.fix(
            str(path),
            contents,
            project_path=str(root) if root is not None else None,
        )
    except CLIError as exc:
        session.logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    finally:
        session.close()
    raise typer.Exit(code=1 if fixes is None and contents else 0)


@app.command("debug")
def debug_command(
    path: Annotated[
        Path | None,
        typer.Argument(exists=True, dir_okay=False, resolve_path=True, help="File to report on."),
    ] = None,
    project: ProjectOption = None,
    settings: SettingsOption = None,
    emoji: EmojiOption = True,
    debug: DebugOption = False,
    json_output: JsonOption = False,
) -> None:
    """Report which ESLint would lint PATH and how the worker is configured."""

    session = _session(settings=settings, project=project, emoji=emoji, debug=debug)
    root = project_for(path, project) or Path.cwd()
    try:
        report = session.service.debug(str(path) if path is not None else None, str(root))
    finally:
        session.close()
    if report is None:
        raise typer.Exit(code=1)
    if json_output:
        typer.echo(json.dumps(asdict(report), indent=2))
    raise typer.Exit(code=0)


@app.command("clear-cache")
def clear_cache_command(
    project: ProjectOption = None,
    settings: SettingsOption = None,
    emoji: EmojiOption = True,
    debug: DebugOption = False,
) -> None:
    """Ask a fresh worker to drop its cached ESLint instances."""

    session = _session(settings=settings, project=project, emoji=emoji, debug=debug)
    try:
        session.service.clear_cache().result(timeout=session.store.get().job_timeout)
    except (LintBridgeError, TimeoutError) as exc:
        session.logger.fail(f"Unable to clear the worker cache: {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        session.close()
    session.logger.ok("Worker cache cleared.")


@app.command("worker")
def worker_command(
    threads: Annotated[int, typer.Option("--threads", min=1, help="Jobs processed concurrently.")] = 4,
) -> None:
    """Serve job bundles on stdin/stdout (the worker side of the protocol)."""

    use_utf8_stdio()
    raise typer.Exit(code=run_worker(sys.stdin, sys.stdout, sys.stderr, max_workers=threads))


def main() -> None:
    """Console-script entry point."""

    app()


__all__ = ["app", "main"]
