# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Entry point for ``python -m lintbridge.worker``."""

from __future__ import annotations

import typer

from .runtime import main

if __name__ == "__main__":
    typer.run(main)
