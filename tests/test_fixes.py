# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for fix application and UTF-16 offset handling."""

from __future__ import annotations

from lintbridge.protocol import FixDescriptor
from lintbridge.text import position_for_index, utf16_length, utf16_slice
from lintbridge.worker.fixes import BOM, apply_fixes
from lintbridge.worker.models import EngineMessage


def _message(start: int, end: int, text: str, rule_id: str = "semi") -> EngineMessage:
    return EngineMessage(rule_id=rule_id, fix=FixDescriptor(range=(start, end), text=text))


def test_fixes_apply_in_range_order() -> None:
    text = "var a = 1;;\n"
    output, skipped = apply_fixes(text, [_message(10, 11, ""), _message(0, 3, "let", "no-var")])
    assert output == "let a = 1;\n"
    assert skipped == []


def test_overlapping_fix_is_skipped() -> None:
    first = _message(0, 5, "hello")
    overlapping = _message(3, 7, "XX")
    output, skipped = apply_fixes("abcdefgh", [overlapping, first])
    assert output == "hellofgh"
    assert skipped == [overlapping]


def test_messages_without_fix_are_ignored() -> None:
    output, skipped = apply_fixes("foo;", [EngineMessage(rule_id="no-undef")])
    assert output == "foo;"
    assert skipped == []


def test_mixed_messages_keep_fixable_order_and_report_inverted_ranges() -> None:
    inverted = _message(3, 1, "X")
    messages = [EngineMessage(rule_id="no-undef"), _message(3, 4, ""), inverted, EngineMessage(rule_id="eqeqeq")]
    output, skipped = apply_fixes("foo;", messages)
    assert output == "foo"
    assert skipped == [inverted]


def test_byte_order_mark_is_preserved() -> None:
    output, _ = apply_fixes(f"{BOM}a;", [_message(1, 2, "")])
    assert output == f"{BOM}a"


def test_offsets_count_utf16_code_units() -> None:
    text = "const s = '😀';;"
    assert utf16_length(text) == len(text) + 1
    semicolon = utf16_length("const s = '😀';")
    output, _ = apply_fixes(text, [_message(semicolon, semicolon + 1, "")])
    assert output == "const s = '😀';"
    assert utf16_slice(text, 10, 14) == "'😀'"


def test_position_for_index() -> None:
    text = "ab\ncd\n"
    assert position_for_index(text, 0) == (0, 0)
    assert position_for_index(text, 4) == (1, 1)
    assert position_for_index(text, 100) == (2, 0)
