# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for the lintbridge worker protocol."""

from __future__ import annotations

import sys

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..constants import DEFAULT_SCOPES


class ConfigError(Exception):
    """Raised when configuration input is invalid."""


class _SnapshotModel(BaseModel):
    """Frozen model serialised with camelCase keys on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AdvancedConfig(_SnapshotModel):
    """Engine construction and message presentation switches."""

    disable_eslint_ignore: bool = False
    use_cache: bool = True
    show_rule_id_in_message: bool = True


class AutofixConfig(_SnapshotModel):
    """Controls for fix jobs and fixable violations."""

    rules_to_disable_while_fixing: tuple[str, ...] = ()
    ignore_fixable_rules_while_typing: bool = False
    fix_on_save: bool = False


class DisablingConfig(_SnapshotModel):
    """Controls that silence or disable linting."""

    rules_to_silence_while_typing: tuple[str, ...] = ()
    disable_when_no_eslint_config: bool = True


class LinterConfig(_SnapshotModel):
    """Merged, serialisable configuration snapshot sent with every job."""

    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)
    autofix: AutofixConfig = Field(default_factory=AutofixConfig)
    disabling: DisablingConfig = Field(default_factory=DisablingConfig)
    worker_bin: str = Field(default_factory=lambda: sys.executable or "python3")
    node_bin: str = "node"
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    warn_about_old_eslint: bool = True
    job_timeout: float | None = Field(default=None, gt=0)
    worker_start_timeout: float = Field(default=10.0, gt=0)
    engine_timeout: float | None = Field(default=None, gt=0)
    worker_threads: int = Field(default=4, ge=1)

    def to_wire(self) -> dict[str, object]:
        """Return the camelCase JSON-compatible representation."""

        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "AdvancedConfig",
    "AutofixConfig",
    "ConfigError",
    "DisablingConfig",
    "LinterConfig",
]
