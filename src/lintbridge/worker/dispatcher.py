# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Route job bundles to cached engine instances and emit their responses."""

from __future__ import annotations

import logging
import os
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from ..binary import BinaryValidator
from ..config.models import LinterConfig
from ..constants import MINIMUM_ESLINT_VERSION, MODERN_ESLINT_VERSION
from ..errors import (
    ConfigNotFoundError,
    EngineError,
    EngineNotFoundError,
    ErrorKind,
    IncompatibleVersionError,
    JobError,
    VersionOverlapError,
)
from ..protocol import ClearCacheResponse, DebugResponse, JobBundle, JobType, LintResponse
from ..versioning import VersionResolver
from .cwd import find_cwd
from .emitter import Emitter
from .engine import EngineResolver, EslintEngine, LintEngine, fix_allowed
from .formatting import count_messages, format_results
from .models import EngineInstallation, EngineOptions, LintResult

LOGGER = logging.getLogger(__name__)

EngineFactory = Callable[[EngineInstallation, EngineOptions, LinterConfig], LintEngine]


@dataclass(frozen=True, slots=True)
class EngineBundle:
    """Engine instances and metadata cached for one resolved directory."""

    cwd: Path
    eslint_path: str
    eslint_version: str
    is_builtin: bool
    lint: LintEngine
    fix: LintEngine


class WorkerDispatcher:
    """Execute ``lint``, ``fix``, ``debug`` and ``clear-cache`` jobs.

    Engine locations and engine instances are cached per resolved directory
    (see :func:`find_cwd`). Both caches are guarded by one lock because jobs run
    concurrently on the worker's thread pool.
    """

    def __init__(
        self,
        emitter: Emitter,
        *,
        resolver: EngineResolver | None = None,
        engine_factory: EngineFactory | None = None,
        validator: BinaryValidator | None = None,
        versions: VersionResolver | None = None,
        pid: int | None = None,
    ) -> None:
        self._emitter = emitter
        self._resolver = resolver or EngineResolver()
        self._validator = validator or BinaryValidator()
        self._engine_factory = engine_factory or self._create_engine
        self._versions = versions or VersionResolver()
        self._pid = pid if pid is not None else os.getpid()
        self._paths: dict[Path, EngineInstallation] = {}
        self._engines: dict[Path, EngineBundle] = {}
        self._lock = Lock()

    @property
    def cached_directories(self) -> tuple[Path, ...]:
        with self._lock:
            return tuple(self._engines)

    def clear_cache(self) -> None:
        with self._lock:
            self._paths.clear()
            self._engines.clear()

    def get_engine(
        self,
        file_path: str | None,
        config: LinterConfig,
        *,
        is_debug: bool = False,
        legacy_package_present: bool = False,
        project_path: str | None = None,
    ) -> EngineBundle:
        """Return the cached engine bundle for ``file_path``, creating it if needed.

        Version gates are evaluated on every call because ``legacy_package_present``
        varies per job. Debug jobs bypass them.

        Raises:
            EngineNotFoundError: When no ESLint can be resolved.
            IncompatibleVersionError: When the engine is older than the supported minimum.
            VersionOverlapError: When the legacy package handles this engine version.
        """

        resolve_dir = find_cwd(file_path, project_path)
        if resolve_dir is None:
            raise EngineNotFoundError("Neither a file nor a project path was supplied")
        use_cache = config.advanced.use_cache

        with self._lock:
            installation = self._paths.get(resolve_dir) if use_cache else None
            if installation is None:
                installation = self._resolver.resolve(file_path)
                self._paths[resolve_dir] = installation
            bundle = self._engines.get(resolve_dir) if use_cache else None
            if bundle is None:
                self._emitter.log(f"Creating new ESLint instance with cwd: {resolve_dir}")
                bundle = self._build_bundle(resolve_dir, installation, config)
                self._engines[resolve_dir] = bundle

        if not is_debug:
            if self._versions.is_below(bundle.eslint_version, MINIMUM_ESLINT_VERSION):
                raise IncompatibleVersionError(bundle.eslint_version)
            if legacy_package_present and self._versions.is_below(bundle.eslint_version, MODERN_ESLINT_VERSION):
                raise VersionOverlapError(bundle.eslint_version)
        return bundle

    def process_message(self, payload: Mapping[str, object]) -> None:
        """Handle one decoded job bundle and emit exactly one reply for it."""

        key = payload.get("key")
        if not key:
            self._emitter.emit_error({"error": "No job key"})
            return
        key = str(key)
        if not payload.get("type"):
            self._emit_failure(JobError(ErrorKind.UNKNOWN, "No job type", key=key))
            return
        try:
            bundle = JobBundle.model_validate(payload)
        except ValidationError as exc:
            self._emit_failure(JobError(ErrorKind.UNKNOWN, f"Invalid job: {exc}", key=key))
            return

        if bundle.type is JobType.CLEAR_CACHE:
            self.clear_cache()
            self._emitter.emit(ClearCacheResponse(key=key))
            return

        config = bundle.config or LinterConfig()
        if bundle.type is not JobType.DEBUG and not bundle.file_path:
            self._emit_failure(JobError(ErrorKind.NO_PROJECT, "No file path was supplied for this job", key=key))
            return

        try:
            engine = self.get_engine(
                bundle.file_path,
                config,
                is_debug=bundle.type is JobType.DEBUG,
                legacy_package_present=bundle.legacy_package_present,
                project_path=bundle.project_path,
            )
        except IncompatibleVersionError as exc:
            self._emit_failure(JobError(ErrorKind.INCOMPATIBLE_VERSION, str(exc), key=key, version=exc.version))
            return
        except VersionOverlapError as exc:
            self._emit_failure(JobError(ErrorKind.VERSION_OVERLAP, str(exc), key=key, version=exc.version))
            return
        except (EngineError, OSError) as exc:
            self._emitter.log(f"Error: {exc}")
            self._emit_failure(
                JobError(
                    ErrorKind.UNKNOWN,
                    f"Can't find an ESLint for file: {bundle.file_path}",
                    key=key,
                    stack=traceback.format_exc(),
                ),
            )
            return

        if bundle.type is JobType.DEBUG:
            self._emitter.emit(self._debug_response(key, engine))
            return

        try:
            response = self._run(bundle, engine, config, key)
        except ConfigNotFoundError as exc:
            self._emit_failure(JobError(ErrorKind.CONFIG_NOT_FOUND, str(exc), key=key))
            return
        except Exception as exc:  # noqa: BLE001 - every job must be answered
            LOGGER.debug("Job %s failed", key, exc_info=True)
            self._emitter.emit_error(
                JobError(
                    ErrorKind.UNKNOWN,
                    str(exc) or "Unknown error",
                    key=key,
                    stack=traceback.format_exc(),
                ).to_payload(),
            )
            return
        self._emitter.emit(response)

    def _run(self, bundle: JobBundle, engine: EngineBundle, config: LinterConfig, key: str) -> LintResponse:
        file_path = str(bundle.file_path)
        if bundle.type is JobType.FIX:
            lint_message_count = count_messages(_lint(engine.lint, file_path, bundle.contents))
            results = _lint(engine.fix, file_path, bundle.contents)
            engine.fix.output_fixes(results)
            rules = engine.fix.get_rules_meta_for_results(results)
            return format_results(
                results,
                rules,
                config,
                key=key,
                is_modified=bundle.is_modified,
                is_fix_job=True,
                lint_message_count=lint_message_count,
            )
        results = _lint(engine.lint, file_path, bundle.contents)
        rules = engine.lint.get_rules_meta_for_results(results)
        return format_results(results, rules, config, key=key, is_modified=bundle.is_modified)

    def _debug_response(self, key: str, engine: EngineBundle) -> DebugResponse:
        is_incompatible = self._versions.is_below(engine.eslint_version, MINIMUM_ESLINT_VERSION)
        is_overlap = not is_incompatible and self._versions.is_below(engine.eslint_version, MODERN_ESLINT_VERSION)
        return DebugResponse(
            key=key,
            eslint_path=engine.eslint_path,
            eslint_version=engine.eslint_version,
            is_incompatible=is_incompatible,
            is_overlap=is_overlap,
            is_built_in=engine.is_builtin,
            worker_pid=self._pid,
        )

    def _emit_failure(self, error: JobError) -> None:
        self._emitter.emit(error.to_payload())

    def _build_bundle(self, cwd: Path, installation: EngineInstallation, config: LinterConfig) -> EngineBundle:
        disabled = frozenset(config.autofix.rules_to_disable_while_fixing)
        ignore = not config.advanced.disable_eslint_ignore
        return EngineBundle(
            cwd=cwd,
            eslint_path=str(installation.path),
            eslint_version=installation.version,
            is_builtin=installation.is_builtin,
            lint=self._engine_factory(installation, EngineOptions(cwd=cwd, ignore=ignore, fix=False), config),
            fix=self._engine_factory(
                installation,
                EngineOptions(cwd=cwd, ignore=ignore, fix=partial(fix_allowed, disabled)),
                config,
            ),
        )

    def _create_engine(self, installation: EngineInstallation, options: EngineOptions, config: LinterConfig) -> LintEngine:
        return EslintEngine(
            installation,
            options,
            node_bin=config.node_bin,
            timeout=config.engine_timeout,
            validator=self._validator,
            versions=self._versions,
        )


def _lint(engine: LintEngine, file_path: str, contents: str | None) -> list[LintResult]:
    if contents is not None:
        return engine.lint_text(contents, file_path=file_path)
    return engine.lint_files([file_path])


__all__ = ["EngineBundle", "EngineFactory", "WorkerDispatcher"]
