# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Data exchanged between the dispatcher and lint engine adapters."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..protocol import FixDescriptor


class _EngineModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EngineMessage(_EngineModel):
    """One violation as reported by ESLint (1-based lines and columns)."""

    rule_id: str | None = None
    severity: int = 2
    message: str = ""
    line: int = 1
    column: int = 1
    end_line: int | None = None
    end_column: int | None = None
    fatal: bool = False
    fix: FixDescriptor | None = None


class LintResult(_EngineModel):
    """Per-file ESLint result; ``output`` holds fixed text when fixes applied."""

    file_path: str
    messages: list[EngineMessage] = Field(default_factory=list)
    output: str | None = None
    source: str | None = None


FixPredicate = Callable[[EngineMessage], bool]


@dataclass(frozen=True, slots=True)
class EngineOptions:
    """Construction options shared by the lint and fix engine instances.

    Attributes:
        cwd: Directory the engine runs in; passed explicitly to every invocation.
        ignore: Honour ``.eslintignore`` patterns.
        fix: ``False`` for lint-only instances, otherwise a per-violation predicate.
    """

    cwd: Path
    ignore: bool = True
    fix: bool | FixPredicate = False


@dataclass(frozen=True, slots=True)
class EngineInstallation:
    """A resolved ESLint package on disk."""

    path: Path
    version: str
    is_builtin: bool = False


__all__ = [
    "EngineInstallation",
    "EngineMessage",
    "EngineOptions",
    "FixPredicate",
    "LintResult",
]
