# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Translate engine results into editor-facing lint messages."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final, Literal

from ..config.models import LinterConfig
from ..protocol import LintMessage, LintResponse, MessageLocation, Position
from .models import EngineMessage, LintResult

SeverityName = Literal["info", "warning", "error"]

_SEVERITIES: Final[dict[int, SeverityName]] = {0: "info", 1: "warning", 2: "error"}


def count_messages(results: Sequence[LintResult]) -> int:
    return sum(len(result.messages) for result in results)


def _position(message: EngineMessage) -> Position:
    row = max(message.line - 1, 0)
    if message.fatal:
        # Parse errors only carry a point; highlight from the start of the line.
        return ((row, 0), (row, max(message.column - 1, 0)))
    end_line = message.end_line if message.end_line is not None else message.line
    end_column = message.end_column if message.end_column is not None else message.column
    return ((row, max(message.column - 1, 0)), (max(end_line - 1, 0), max(end_column - 1, 0)))


def _rule_url(rules: Mapping[str, Mapping[str, object]], rule_id: str | None) -> str | None:
    if rule_id is None:
        return None
    docs = rules.get(rule_id, {}).get("docs")
    url = docs.get("url") if isinstance(docs, Mapping) else None
    return url if isinstance(url, str) else None


def _suppressed(message: EngineMessage, config: LinterConfig) -> bool:
    if config.autofix.ignore_fixable_rules_while_typing and message.fix is not None:
        return True
    return message.rule_id in config.disabling.rules_to_silence_while_typing


def format_results(
    results: Sequence[LintResult],
    rules: Mapping[str, Mapping[str, object]],
    config: LinterConfig,
    *,
    key: str,
    is_modified: bool = False,
    is_fix_job: bool = False,
    lint_message_count: int = 0,
) -> LintResponse:
    """Build the response for a lint or fix job.

    Args:
        results: Engine results for the linted file.
        rules: Rule metadata keyed by rule id, used for documentation links.
        config: Configuration snapshot sent with the job.
        key: Correlation key of the job.
        is_modified: Whether the buffer had unsaved changes; enables the
            while-typing suppressions for lint jobs.
        is_fix_job: Report ``fix_count`` for fix jobs.
        lint_message_count: Number of violations found before fixing.

    Returns:
        LintResponse: Formatted messages with the rule metadata.
    """

    suppress = is_modified and not is_fix_job
    show_rule_id = config.advanced.show_rule_id_in_message
    messages: list[LintMessage] = []
    for result in results:
        for message in result.messages:
            if suppress and _suppressed(message, config):
                continue
            tag = ""
            if show_rule_id:
                tag = " (Fatal)" if message.fatal else f" ({message.rule_id})"
            messages.append(
                LintMessage(
                    severity=_SEVERITIES.get(message.severity, "error"),
                    location=MessageLocation(file=result.file_path, position=_position(message)),
                    excerpt=f"{message.message}{tag}",
                    fix=message.fix,
                    url=_rule_url(rules, message.rule_id),
                ),
            )

    fix_count = max(lint_message_count - len(messages), 0) if is_fix_job else None
    return LintResponse(
        key=key,
        results=messages,
        rules={rule_id: dict(meta) for rule_id, meta in rules.items()},
        fix_count=fix_count,
    )


__all__ = ["count_messages", "format_results"]
