# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures: fake worker processes and a scriptable fake ESLint."""

from __future__ import annotations

import io
import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from lintbridge.config import LinterConfig
from lintbridge.job_manager import JobManager
from lintbridge.worker.emitter import Emitter

from helpers.fakes import FAKE_WORKER


@pytest.fixture
def fake_worker_script(tmp_path: Path) -> Path:
    script = tmp_path / "fake_worker.py"
    script.write_text(FAKE_WORKER, encoding="utf-8")
    return script


@pytest.fixture
def spawn_log(tmp_path: Path) -> Path:
    return tmp_path / "spawns.log"


@pytest.fixture
def make_manager(fake_worker_script: Path, spawn_log: Path) -> Iterator[Callable[..., JobManager]]:
    """Build job managers running the fake worker in the given mode; disposed at teardown."""

    created: list[JobManager] = []

    def factory(mode: str = "echo", **kwargs: object) -> JobManager:
        on_unknown_error = kwargs.pop("on_unknown_error", None)
        config = LinterConfig.model_validate({"worker_bin": sys.executable, **kwargs})
        manager = JobManager(
            config,
            worker_args=(str(fake_worker_script), mode, str(spawn_log)),
            on_unknown_error=on_unknown_error,  # type: ignore[arg-type]
        )
        created.append(manager)
        return manager

    yield factory
    for manager in created:
        manager.dispose()


@pytest.fixture
def streams() -> tuple[io.StringIO, io.StringIO]:
    return io.StringIO(), io.StringIO()


@pytest.fixture
def emitter(streams: tuple[io.StringIO, io.StringIO]) -> Emitter:
    stdout, stderr = streams
    return Emitter(stdout, stderr)


@pytest.fixture
def fake_eslint_config() -> LinterConfig:
    """Configuration that runs the fake ``eslint.js`` with the current interpreter."""

    return LinterConfig(node_bin=sys.executable)
