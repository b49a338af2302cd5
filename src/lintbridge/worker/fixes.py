# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Apply engine fix descriptors to source text."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from ..protocol import FixDescriptor
from ..text import utf16_slice
from .models import EngineMessage

BOM: Final[str] = "\ufeff"


def apply_fixes(text: str, messages: Sequence[EngineMessage]) -> tuple[str, list[EngineMessage]]:
    """Apply the fixes carried by ``messages`` to ``text`` in a single pass.

    Fixes are applied in range order. A fix overlapping an earlier one, or with
    an inverted range, is skipped and returned so a later pass can retry it
    against the updated text.

    Args:
        text: Source text the ranges refer to (UTF-16 code unit offsets, BOM excluded).
        messages: Violations; those without a fix are ignored.

    Returns:
        tuple[str, list[EngineMessage]]: The fixed text and the messages whose
        fix was not applied.
    """

    fixable: list[tuple[EngineMessage, FixDescriptor]] = sorted(
        ((message, message.fix) for message in messages if message.fix is not None),
        key=lambda pair: pair[1].range,
    )
    has_bom = text.startswith(BOM)
    body = text[1:] if has_bom else text
    output = BOM if has_bom else ""
    last_pos: int | None = None
    skipped: list[EngineMessage] = []

    for message, fix in fixable:
        start, end = fix.range
        replacement = fix.text
        if (last_pos is not None and last_pos >= start) or start > end:
            skipped.append(message)
            continue
        if (start < 0 <= end) or (start == 0 and replacement.startswith(BOM)):
            output = ""
        output += utf16_slice(body, last_pos or 0, max(0, start))
        output += replacement
        last_pos = end

    output += utf16_slice(body, last_pos or 0)
    return output, skipped


__all__ = ["BOM", "apply_fixes"]
