# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolve ESLint installations and drive them through the Node CLI."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from threading import Lock
from typing import Final, Protocol

from ..binary import BinaryValidator
from ..constants import (
    ESLINT_BIN_RELATIVE,
    ESLINT_PACKAGE,
    ESLINT_RULE_DOCS_URL,
    MAX_FIX_PASSES,
    METADATA_FORMAT_VERSION,
)
from ..errors import ConfigNotFoundError, EngineError, EngineNotFoundError
from ..process import CommandOptions, resolve_executable, run_command
from ..versioning import VersionResolver
from .fixes import apply_fixes
from .models import EngineInstallation, EngineMessage, EngineOptions, LintResult

LOGGER = logging.getLogger(__name__)

_NO_CONFIG_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"No ESLint configuration found|couldn't find a configuration file|couldn't find an eslint\.config",
    re.IGNORECASE,
)
# ESLint exits 0 when clean and 1 when rule violations were found; anything
# else means the run itself failed.
_LINT_EXIT_CODES: Final[frozenset[int]] = frozenset({0, 1})


class LintEngine(Protocol):
    """Capability the worker requires from a lint engine instance."""

    @property
    def options(self) -> EngineOptions: ...

    def lint_text(self, text: str, *, file_path: str) -> list[LintResult]: ...

    def lint_files(self, paths: Sequence[str]) -> list[LintResult]: ...

    def get_rules_meta_for_results(self, results: Sequence[LintResult]) -> dict[str, dict[str, object]]: ...

    def output_fixes(self, results: Sequence[LintResult]) -> None: ...


def read_package_version(package_json: Path) -> str:
    """Return the ``version`` field of an npm ``package.json``.

    Raises:
        EngineError: If the manifest cannot be read or carries no version.
    """

    try:
        manifest = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise EngineError(f"Unable to read {package_json}: {exc}") from exc
    version = manifest.get("version") if isinstance(manifest, dict) else None
    if not isinstance(version, str) or not version:
        raise EngineError(f"{package_json} does not declare a version")
    return version


def _package_manifest(directory: Path) -> Path:
    return directory / "node_modules" / ESLINT_PACKAGE / "package.json"


class EngineResolver:
    """Locate the ESLint package that Node would load for a given file.

    Lookup mirrors Node's module resolution: ``node_modules/eslint`` is searched
    in the file's directory and then each ancestor. When nothing is found the
    ``eslint`` executable on the search path acts as the built-in fallback.
    """

    def __init__(self) -> None:
        self._builtin: EngineInstallation | None = None
        self._lock = Lock()

    def resolve(self, file_path: str | Path | None) -> EngineInstallation:
        """Return the installation reachable from ``file_path``.

        Raises:
            EngineNotFoundError: When neither a local nor a built-in ESLint exists.
        """

        if file_path:
            start = Path(file_path).parent
            for directory in (start, *start.parents):
                manifest = _package_manifest(directory)
                if manifest.is_file():
                    return EngineInstallation(
                        path=manifest.parent,
                        version=read_package_version(manifest),
                        is_builtin=False,
                    )
        return self.builtin()

    def builtin(self) -> EngineInstallation:
        """Return the fallback installation found through the ``eslint`` executable."""

        with self._lock:
            if self._builtin is not None:
                return self._builtin
        executable = resolve_executable(ESLINT_PACKAGE)
        if executable is None:
            raise EngineNotFoundError("Cannot find module 'eslint'")
        root = self._package_root(Path(executable).resolve())
        installation = EngineInstallation(
            path=root,
            version=read_package_version(root / "package.json"),
            is_builtin=True,
        )
        with self._lock:
            self._builtin = installation
        return installation

    @staticmethod
    def _package_root(executable: Path) -> Path:
        for directory in executable.parents:
            manifest = directory / "package.json"
            if not manifest.is_file():
                continue
            try:
                name = json.loads(manifest.read_text(encoding="utf-8")).get("name")
            except (OSError, json.JSONDecodeError, AttributeError):
                continue
            if name == ESLINT_PACKAGE:
                return directory
        raise EngineNotFoundError(f"Cannot locate the eslint package owning {executable}")


def _read_source(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


class EslintEngine:
    """One configured ESLint instance, run as ``node eslint.js --stdin``.

    A fix-enabled instance re-lints its own output until no accepted fix
    remains or ``MAX_FIX_PASSES`` is reached, the way ESLint's
    ``verifyAndFix`` does, and reports the final text as ``output``.
    """

    def __init__(
        self,
        installation: EngineInstallation,
        options: EngineOptions,
        *,
        node_bin: str = "node",
        timeout: float | None = None,
        validator: BinaryValidator | None = None,
        versions: VersionResolver | None = None,
    ) -> None:
        self._installation = installation
        self._options = options
        self._node_bin = node_bin
        self._timeout = timeout
        self._validator = validator
        versions = versions or VersionResolver()
        self._with_metadata = not versions.is_below(installation.version, METADATA_FORMAT_VERSION)
        self._rules_meta: dict[str, dict[str, object]] = {}
        self._lock = Lock()

    @property
    def installation(self) -> EngineInstallation:
        return self._installation

    @property
    def options(self) -> EngineOptions:
        return self._options

    def lint_text(self, text: str, *, file_path: str) -> list[LintResult]:
        """Lint in-memory ``text`` as though it were the contents of ``file_path``."""

        results = self._execute(text, file_path)
        if self._options.fix is False:
            return results
        return [self._fix_result(result, text) for result in results]

    def lint_files(self, paths: Sequence[str]) -> list[LintResult]:
        """Lint each of ``paths`` from disk."""

        results: list[LintResult] = []
        for path in paths:
            try:
                text = _read_source(Path(path))
            except OSError as exc:
                raise EngineError(f"Unable to read {path}: {exc}") from exc
            results.extend(self.lint_text(text, file_path=path))
        return results

    def get_rules_meta_for_results(self, results: Sequence[LintResult]) -> dict[str, dict[str, object]]:
        """Return rule metadata for every rule that reported in ``results``.

        Core rules always get a documentation link, even when the engine is too
        old to report metadata itself.
        """

        rules: dict[str, dict[str, object]] = {}
        with self._lock:
            known = dict(self._rules_meta)
        for rule_id in _rule_ids(results):
            meta = known.get(rule_id)
            if meta is not None:
                rules[rule_id] = meta
            elif "/" not in rule_id:
                rules[rule_id] = {"docs": {"url": ESLINT_RULE_DOCS_URL.format(rule_id=rule_id)}}
        return rules

    def output_fixes(self, results: Sequence[LintResult]) -> None:
        """Write the fixed ``output`` of each result back to its file."""

        for result in results:
            if result.output is None:
                continue
            LOGGER.debug("Writing fixes to %s", result.file_path)
            with Path(result.file_path).open("w", encoding="utf-8", newline="") as handle:
                handle.write(result.output)

    def _fix_result(self, result: LintResult, original: str) -> LintResult:
        predicate = self._options.fix
        text = original
        current = result
        for _ in range(MAX_FIX_PASSES):
            accepted = [
                message
                for message in current.messages
                if message.fix is not None and (predicate is True or (callable(predicate) and predicate(message)))
            ]
            if not accepted:
                break
            fixed, _skipped = apply_fixes(text, accepted)
            if fixed == text:
                break
            text = fixed
            relinted = self._execute(text, result.file_path)
            if not relinted:
                break
            current = relinted[0]
        if text == original:
            return current
        return current.model_copy(update={"output": text})

    def _command(self, file_path: str) -> list[str]:
        script = self._installation.path.joinpath(*ESLINT_BIN_RELATIVE)
        output_format = "json-with-metadata" if self._with_metadata else "json"
        args = [self._node_bin, str(script), "--format", output_format, "--stdin", "--stdin-filename", file_path]
        if not self._options.ignore:
            args.append("--no-ignore")
        return args

    def _ensure_runtime(self) -> None:
        if self._validator is not None and self._validator.validate_sync(self._node_bin) is None:
            raise EngineError(f"Unable to run Node binary '{self._node_bin}'")

    def _execute(self, text: str, file_path: str) -> list[LintResult]:
        self._ensure_runtime()
        try:
            completed = run_command(
                self._command(file_path),
                options=CommandOptions(
                    cwd=self._options.cwd,
                    check=False,
                    timeout=self._timeout,
                    input_text=text,
                    discard_stdin=False,
                ),
            )
        except (OSError, ValueError) as exc:
            raise EngineError(f"Unable to start ESLint: {exc}") from exc

        if completed.returncode not in _LINT_EXIT_CODES:
            detail = (completed.stderr or completed.stdout or "").strip()
            reason = next((line for line in detail.splitlines() if _NO_CONFIG_PATTERN.search(line)), None)
            if reason is not None:
                raise ConfigNotFoundError(reason.strip())
            raise EngineError(detail or f"ESLint exited with status {completed.returncode}")

        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise EngineError(f"ESLint produced unparseable output: {exc}") from exc
        return self._parse_payload(payload)

    def _parse_payload(self, payload: object) -> list[LintResult]:
        entries: object = payload
        if isinstance(payload, dict):
            entries = payload.get("results", [])
            metadata = payload.get("metadata")
            rules_meta = metadata.get("rulesMeta") if isinstance(metadata, dict) else None
            if isinstance(rules_meta, dict):
                with self._lock:
                    self._rules_meta.update(
                        {str(rule): meta for rule, meta in rules_meta.items() if isinstance(meta, dict)},
                    )
        if not isinstance(entries, list):
            raise EngineError("ESLint output did not contain a result list")
        return [LintResult.model_validate(entry) for entry in entries if isinstance(entry, dict)]


def _rule_ids(results: Iterable[LintResult]) -> list[str]:
    seen: dict[str, None] = {}
    for result in results:
        for message in result.messages:
            if message.rule_id:
                seen.setdefault(message.rule_id, None)
    return list(seen)


def fix_allowed(disabled_rules: frozenset[str], message: EngineMessage) -> bool:
    """Return ``True`` when the fix for ``message`` may be applied."""

    return message.rule_id not in disabled_rules


__all__ = [
    "EngineResolver",
    "EslintEngine",
    "LintEngine",
    "fix_allowed",
    "read_package_version",
]
