# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Newline-delimited JSON envelope exchanged with the worker process.

Every message is a single JSON object terminated by ``\\n``. Outbound lines are
job bundles; inbound lines are responses, typed failures, ``{"log": ...}``
side-channel diagnostics, or the one-off ``{"type": "ready"}`` handshake.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from enum import Enum
from typing import Final, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config.models import LinterConfig

READY_TYPE: Final[str] = "ready"
READY_MESSAGE: Final[dict[str, str]] = {"type": READY_TYPE}

Position: TypeAlias = tuple[tuple[int, int], tuple[int, int]]


class JobType(str, Enum):
    """Enumerate the jobs understood by the worker."""

    LINT = "lint"
    FIX = "fix"
    DEBUG = "debug"
    CLEAR_CACHE = "clear-cache"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, object]:
        """Return the camelCase JSON-compatible representation, omitting unset optionals."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobBundle(WireModel):
    """Request sent to the worker; immutable once created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    type: JobType
    key: str | None = None
    config: LinterConfig | None = None
    contents: str | None = None
    file_path: str | None = None
    project_path: str | None = None
    is_modified: bool = False
    legacy_package_present: bool = False

    def with_key(self, key: str) -> JobBundle:
        """Return a copy of this bundle carrying the correlation ``key``."""

        return self.model_copy(update={"key": key})


class FixDescriptor(WireModel):
    """Raw engine fix: replace the character range ``[start, end)`` with ``text``."""

    range: tuple[int, int]
    text: str


class MessageLocation(WireModel):
    file: str
    position: Position


class LintMessage(WireModel):
    """Diagnostic formatted for the editor's linter UI (0-based positions)."""

    severity: Literal["info", "warning", "error"]
    location: MessageLocation
    excerpt: str
    fix: FixDescriptor | None = None
    url: str | None = None


class LintResponse(WireModel):
    key: str
    results: list[LintMessage] = Field(default_factory=list)
    rules: dict[str, dict[str, object]] = Field(default_factory=dict)
    fix_count: int | None = None


class DebugResponse(WireModel):
    key: str
    type: Literal["debug"] = "debug"
    eslint_path: str | None = None
    eslint_version: str | None = None
    is_incompatible: bool = False
    is_overlap: bool = False
    is_built_in: bool = False
    worker_pid: int | None = None


class ClearCacheResponse(WireModel):
    key: str
    type: Literal["clear-cache"] = "clear-cache"
    result: bool = True


JobResponse: TypeAlias = LintResponse | DebugResponse | ClearCacheResponse
WireMessage: TypeAlias = Mapping[str, object] | WireModel


def encode_line(message: WireMessage) -> str:
    """Serialise ``message`` as one compact JSON line terminated by ``\\n``."""

    payload = message.to_wire() if isinstance(message, WireModel) else dict(message)
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")) + "\n"


def decode_line(line: str) -> dict[str, object] | None:
    """Decode one line, returning ``None`` for blank, garbled or non-object input."""

    stripped = line.strip()
    if not stripped:
        return None
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def iter_messages(
    stream: Iterable[str],
    on_malformed: Callable[[str], None] | None = None,
) -> Iterator[dict[str, object]]:
    """Yield decoded objects from ``stream``, tolerating garbled lines.

    Args:
        stream: Line iterator such as a text-mode pipe.
        on_malformed: Invoked with the raw text of each non-blank line that fails to decode.

    Yields:
        dict[str, object]: Each successfully decoded JSON object.
    """

    for line in stream:
        message = decode_line(line)
        if message is not None:
            yield message
        elif on_malformed is not None and line.strip():
            on_malformed(line.rstrip("\n"))


def is_ready_signal(message: Mapping[str, object]) -> bool:
    return message.get("type") == READY_TYPE and "key" not in message


def parse_response(payload: Mapping[str, object]) -> JobResponse:
    """Return the typed response model matching ``payload``.

    Raises:
        pydantic.ValidationError: If ``payload`` does not match any response shape.
    """

    kind = payload.get("type")
    if kind == JobType.DEBUG.value:
        return DebugResponse.model_validate(payload)
    if kind == JobType.CLEAR_CACHE.value:
        return ClearCacheResponse.model_validate(payload)
    return LintResponse.model_validate(payload)


__all__ = [
    "READY_MESSAGE",
    "ClearCacheResponse",
    "DebugResponse",
    "FixDescriptor",
    "JobBundle",
    "JobResponse",
    "JobType",
    "LintMessage",
    "LintResponse",
    "MessageLocation",
    "Position",
    "WireMessage",
    "WireModel",
    "decode_line",
    "encode_line",
    "is_ready_signal",
    "iter_messages",
    "parse_response",
]
