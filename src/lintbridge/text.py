# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Character offsets as ESLint reports them (UTF-16 code units)."""

from __future__ import annotations

_CODEC = "utf-16-le"
_UNIT = 2


def utf16_length(text: str) -> int:
    return len(text.encode(_CODEC)) // _UNIT


def utf16_slice(text: str, start: int, end: int | None = None) -> str:
    """Return ``text[start:end]`` where both bounds count UTF-16 code units."""

    data = text.encode(_CODEC)
    stop = None if end is None else max(0, end) * _UNIT
    return data[max(0, start) * _UNIT : stop].decode(_CODEC, errors="replace")


def position_for_index(text: str, index: int) -> tuple[int, int]:
    """Return the 0-based ``(row, column)`` of a UTF-16 character ``index``.

    Indices past either end of ``text`` are clipped.
    """

    prefix = utf16_slice(text, 0, min(max(0, index), utf16_length(text)))
    row = prefix.count("\n")
    line_start = prefix.rfind("\n") + 1
    return row, utf16_length(prefix[line_start:])


__all__ = ["position_for_index", "utf16_length", "utf16_slice"]
