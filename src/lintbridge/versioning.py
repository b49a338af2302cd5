# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helpers for comparing runtime and engine versions."""

from __future__ import annotations

from packaging.version import InvalidVersion, Version


class VersionResolver:
    """Compare versions reported by runtimes and ESLint using standardized semantics."""

    def is_below(self, actual: str, threshold: str) -> bool:
        """Return ``True`` when ``actual`` sorts strictly before ``threshold``.

        Unparseable versions are treated as below any threshold so callers
        fail closed.
        """

        try:
            return Version(actual) < Version(threshold)
        except InvalidVersion:
            return True


__all__ = ["VersionResolver"]
