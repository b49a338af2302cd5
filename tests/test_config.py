# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for settings loading, project overrides and change notification."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lintbridge.config import (
    ConfigError,
    ConfigStore,
    LinterConfig,
    config_should_invalidate_worker_cache,
    find_override_file,
    load_settings,
    merge_config,
)


def test_defaults_serialise_with_camel_case_keys() -> None:
    wire = LinterConfig().to_wire()
    assert wire["advanced"] == {
        "disableEslintIgnore": False,
        "useCache": True,
        "showRuleIdInMessage": True,
    }
    assert wire["autofix"]["rulesToDisableWhileFixing"] == []
    assert wire["disabling"]["disableWhenNoEslintConfig"] is True
    assert wire["nodeBin"] == "node"
    assert "source.js" in wire["scopes"]


def test_load_settings_reads_tool_section(tmp_path: Path) -> None:
    settings = tmp_path / "pyproject.toml"
    settings.write_text(
        '[tool.lintbridge]\nnodeBin = "/opt/node/bin/node"\n[tool.lintbridge.autofix]\nfixOnSave = true\n',
        encoding="utf-8",
    )
    loaded = load_settings(settings)
    assert loaded == {"node_bin": "/opt/node/bin/node", "autofix": {"fix_on_save": True}}


def test_load_settings_missing_file_and_invalid_toml(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "absent.toml") == {}
    assert load_settings(None) == {}
    broken = tmp_path / "broken.toml"
    broken.write_text("advanced = [", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(broken)


def test_merge_config_deep_merges_overrides() -> None:
    config = merge_config(
        {"advanced": {"useCache": False, "showRuleIdInMessage": False}},
        {"advanced": {"useCache": True}, "disabling": {"rulesToSilenceWhileTyping": ["semi"]}},
    )
    assert config.advanced.use_cache is True
    assert config.advanced.show_rule_id_in_message is False
    assert config.disabling.rules_to_silence_while_typing == ("semi",)


def test_merge_config_rejects_invalid_values() -> None:
    with pytest.raises(ConfigError):
        merge_config({"workerThreads": 0})


def test_find_override_file_returns_first_match(tmp_path: Path) -> None:
    first = tmp_path / "one"
    second = tmp_path / "two"
    first.mkdir()
    second.mkdir()
    (second / ".linter-eslint").write_text("{}", encoding="utf-8")
    assert find_override_file([first, second]) == second / ".linter-eslint"
    assert find_override_file([first]) is None


def test_store_prefers_project_overrides_and_notifies(tmp_path: Path) -> None:
    override = tmp_path / ".linter-eslint"
    override.write_text(json.dumps({"autofix": {"fixOnSave": True}}), encoding="utf-8")
    store = ConfigStore({"nodeBin": "/usr/bin/node"}, project_roots=[tmp_path])
    assert store.override_file == override
    assert store.get().autofix.fix_on_save is True
    assert store.get().node_bin == "/usr/bin/node"

    seen: list[tuple[LinterConfig, LinterConfig | None]] = []
    unsubscribe = store.on_change(lambda new, previous: seen.append((new, previous)))
    override.write_text(json.dumps({"autofix": {"fixOnSave": False}}), encoding="utf-8")
    store.update()
    assert store.get().autofix.fix_on_save is False
    assert len(seen) == 1
    new, previous = seen[0]
    assert previous is not None and previous.autofix.fix_on_save is True
    assert new.autofix.fix_on_save is False

    unsubscribe()
    store.set_settings({"nodeBin": "node"})
    assert len(seen) == 1


def test_store_stays_quiet_when_the_snapshot_is_unchanged(tmp_path: Path) -> None:
    override = tmp_path / ".linter-eslint"
    override.write_text(json.dumps({"autofix": {"fixOnSave": True}}), encoding="utf-8")
    store = ConfigStore({"nodeBin": "node"}, project_roots=[tmp_path])
    seen: list[LinterConfig] = []
    store.on_change(lambda new, previous: seen.append(new))

    store.update()
    store.set_settings({"nodeBin": "node"})
    assert seen == []

    store.set_settings({"nodeBin": "/opt/node/bin/node"})
    assert [config.node_bin for config in seen] == ["/opt/node/bin/node"]


def test_store_treats_unparsable_override_as_empty(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / ".linter-eslint").write_text("{not json", encoding="utf-8")
    store = ConfigStore({"warnAboutOldEslint": False}, project_roots=[tmp_path])
    assert store.get().warn_about_old_eslint is False
    assert "Error parsing" in caplog.text


def test_cache_invalidation_tracks_engine_construction_options() -> None:
    base = LinterConfig()
    assert not config_should_invalidate_worker_cache(None, base)
    assert not config_should_invalidate_worker_cache(base, merge_config({"autofix": {"fixOnSave": True}}))
    assert config_should_invalidate_worker_cache(base, merge_config({"advanced": {"disableEslintIgnore": True}}))
    assert config_should_invalidate_worker_cache(
        base,
        merge_config({"autofix": {"rulesToDisableWhileFixing": ["no-var"]}}),
    )
