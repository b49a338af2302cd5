# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration snapshots, loading and change notification."""

from __future__ import annotations

from .loader import (
    ConfigChangeHandler,
    ConfigStore,
    config_should_invalidate_worker_cache,
    find_override_file,
    load_settings,
    merge_config,
)
from .models import AdvancedConfig, AutofixConfig, ConfigError, DisablingConfig, LinterConfig

__all__ = [
    "AdvancedConfig",
    "AutofixConfig",
    "ConfigChangeHandler",
    "ConfigError",
    "ConfigStore",
    "DisablingConfig",
    "LinterConfig",
    "config_should_invalidate_worker_cache",
    "find_override_file",
    "load_settings",
    "merge_config",
]
