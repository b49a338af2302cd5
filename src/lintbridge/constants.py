# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Constants shared by the job manager and the worker process."""

from __future__ import annotations

from typing import Final

PACKAGE_NAME: Final[str] = "lintbridge"
PACKAGE_VERSION: Final[str] = "0.4.0"

MINIMUM_ESLINT_VERSION: Final[str] = "7.0.0"
# Engines below this version are also handled by the legacy ``linter-eslint`` package.
MODERN_ESLINT_VERSION: Final[str] = "8.0.0"
# ``json-with-metadata`` is not available on older engines.
METADATA_FORMAT_VERSION: Final[str] = "8.0.0"

IGNORE_MARKER: Final[str] = ".eslintignore"
PROJECT_OVERRIDE_FILE: Final[str] = ".linter-eslint"
ESLINT_PACKAGE: Final[str] = "eslint"
ESLINT_BIN_RELATIVE: Final[tuple[str, ...]] = ("bin", "eslint.js")
ESLINT_RULE_DOCS_URL: Final[str] = "https://eslint.org/docs/rules/{rule_id}"

WORKER_MODULE: Final[str] = "lintbridge.worker"
VERSION_FLAG: Final[str] = "--version"
KEY_BYTES: Final[int] = 5
MAX_FIX_PASSES: Final[int] = 10
TIMEOUT_RETURN_CODE: Final[int] = 124

DEFAULT_SCOPES: Final[tuple[str, ...]] = (
    "source.js",
    "source.jsx",
    "source.js.jsx",
    "source.flow",
    "source.babel",
    "source.js-semantic",
    "source.ts",
)

__all__ = [
    "DEFAULT_SCOPES",
    "ESLINT_BIN_RELATIVE",
    "ESLINT_PACKAGE",
    "ESLINT_RULE_DOCS_URL",
    "IGNORE_MARKER",
    "KEY_BYTES",
    "MAX_FIX_PASSES",
    "METADATA_FORMAT_VERSION",
    "MINIMUM_ESLINT_VERSION",
    "MODERN_ESLINT_VERSION",
    "PACKAGE_NAME",
    "PACKAGE_VERSION",
    "PROJECT_OVERRIDE_FILE",
    "TIMEOUT_RETURN_CODE",
    "VERSION_FLAG",
    "WORKER_MODULE",
]
