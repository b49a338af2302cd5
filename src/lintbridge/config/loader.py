# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Load user settings, apply per-project overrides and notify on change."""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from threading import Lock

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from ..constants import PROJECT_OVERRIDE_FILE
from .models import ConfigError, LinterConfig

LOGGER = logging.getLogger(__name__)

ConfigChangeHandler = Callable[[LinterConfig, LinterConfig | None], None]


def _normalise_keys(data: Mapping[str, object]) -> dict[str, object]:
    normalised: dict[str, object] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            value = _normalise_keys(value)
        normalised[to_snake(str(key))] = value
    return normalised


def _deep_merge(base: Mapping[str, object], overrides: Mapping[str, object]) -> dict[str, object]:
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Path | None) -> dict[str, object]:
    """Return user settings read from the TOML file at ``path``.

    Args:
        path: Settings file location; ``None`` or a missing file yields defaults.

    Returns:
        dict[str, object]: Settings with snake_case keys.

    Raises:
        ConfigError: If the file exists but is not valid TOML.
    """

    if path is None or not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid settings file {path}: {exc}") from exc
    tool_section = data.get("tool")
    section = tool_section.get("lintbridge", {}) if isinstance(tool_section, dict) else data
    return _normalise_keys(section)


def find_override_file(project_roots: Iterable[Path]) -> Path | None:
    """Return the first ``.linter-eslint`` file found in ``project_roots``."""

    for root in project_roots:
        candidate = root / PROJECT_OVERRIDE_FILE
        if candidate.is_file():
            return candidate
    return None


def merge_config(base: Mapping[str, object], overrides: Mapping[str, object] | None = None) -> LinterConfig:
    """Deep-merge ``overrides`` onto ``base`` and validate the result.

    Raises:
        ConfigError: If the merged data does not validate.
    """

    merged = _deep_merge(_normalise_keys(base), _normalise_keys(overrides or {}))
    try:
        return LinterConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def config_should_invalidate_worker_cache(prev: LinterConfig | None, current: LinterConfig) -> bool:
    """Return ``True`` when a change affects options captured by cached engine instances."""

    if prev is None:
        return False
    return (
        prev.advanced.disable_eslint_ignore != current.advanced.disable_eslint_ignore
        or prev.autofix.rules_to_disable_while_fixing != current.autofix.rules_to_disable_while_fixing
    )


class ConfigStore:
    """Hold the current configuration, preferring ``.linter-eslint`` project overrides.

    The store re-reads the override file on :meth:`update` and notifies every
    registered handler with ``(new, previous)`` snapshots.
    """

    def __init__(self, settings: Mapping[str, object] | None = None, *, project_roots: Iterable[Path] = ()) -> None:
        self._settings = dict(settings or {})
        self._overrides: dict[str, object] = {}
        self._override_file: Path | None = None
        self._handlers: list[ConfigChangeHandler] = []
        self._lock = Lock()
        self._current = merge_config(self._settings)
        self.rescan(project_roots)

    @property
    def override_file(self) -> Path | None:
        return self._override_file

    def get(self) -> LinterConfig:
        with self._lock:
            return self._current

    def rescan(self, project_roots: Iterable[Path]) -> None:
        """Look for an override file among ``project_roots`` and reload."""

        self._override_file = find_override_file(project_roots)
        self.update()

    def update(self) -> None:
        """Re-read the override file and notify handlers with the new snapshot."""

        overrides: dict[str, object] = {}
        if self._override_file is not None:
            try:
                loaded = json.loads(self._override_file.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                LOGGER.error("Error parsing %s file: %s", self._override_file, exc)
            else:
                if isinstance(loaded, dict):
                    overrides = loaded
                else:
                    LOGGER.error("Ignoring %s: expected a JSON object", self._override_file)
        self._overrides = overrides
        self.set_settings(self._settings)

    def set_settings(self, settings: Mapping[str, object]) -> None:
        """Replace the user settings and notify handlers when the snapshot changes."""

        new = merge_config(settings, self._overrides)
        with self._lock:
            self._settings = dict(settings)
            previous = self._current
            if new == previous:
                return
            self._current = new
            handlers = list(self._handlers)
        for handler in handlers:
            handler(new, previous)

    def on_change(self, handler: ConfigChangeHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unregisters it."""

        with self._lock:
            self._handlers.append(handler)
        return lambda: self._remove_handler(handler)

    def _remove_handler(self, handler: ConfigChangeHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)


__all__ = [
    "ConfigChangeHandler",
    "ConfigStore",
    "config_should_invalidate_worker_cache",
    "find_override_file",
    "load_settings",
    "merge_config",
]
