# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for ESLint resolution and the CLI-backed engine adapter."""

from __future__ import annotations

import sys
from functools import partial
from pathlib import Path

import pytest

from lintbridge.binary import BinaryValidator
from lintbridge.errors import ConfigNotFoundError, EngineError, EngineNotFoundError
from lintbridge.worker.engine import EngineResolver, EslintEngine, fix_allowed, read_package_version
from lintbridge.worker.models import EngineInstallation, EngineOptions

from helpers.fakes import install_fake_eslint, read_calls


def _engine(package: Path, cwd: Path, *, version: str = "8.57.0", **options: object) -> EslintEngine:
    return EslintEngine(
        EngineInstallation(path=package, version=version),
        EngineOptions(cwd=cwd, **options),  # type: ignore[arg-type]
        node_bin=sys.executable,
    )


def test_resolver_prefers_nearest_local_install(tmp_path: Path) -> None:
    install_fake_eslint(tmp_path / "p", version="8.1.0")
    nested = install_fake_eslint(tmp_path / "p" / "packages" / "web", version="9.0.0")
    resolver = EngineResolver()

    local = resolver.resolve(tmp_path / "p" / "packages" / "web" / "src" / "index.js")
    assert local.path == nested
    assert local.version == "9.0.0"
    assert local.is_builtin is False
    assert resolver.resolve(tmp_path / "p" / "lib" / "a.js").version == "8.1.0"


@pytest.mark.skipif(sys.platform == "win32", reason="uses symlinked executables")
def test_resolver_falls_back_to_eslint_on_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    package = install_fake_eslint(tmp_path / "global" / "lib", version="8.50.0")
    bin_dir = tmp_path / "global" / "bin"
    bin_dir.mkdir()
    (bin_dir / "eslint").symlink_to(package / "bin" / "eslint.js")
    monkeypatch.setenv("PATH", str(bin_dir))

    resolver = EngineResolver()
    installation = resolver.resolve(tmp_path / "project" / "a.js")
    assert installation.is_builtin is True
    assert installation.path == package.resolve()
    assert resolver.builtin() is installation


def test_resolver_raises_when_nothing_is_installed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    with pytest.raises(EngineNotFoundError):
        EngineResolver().resolve(tmp_path / "project" / "a.js")


def test_read_package_version_requires_version(tmp_path: Path) -> None:
    manifest = tmp_path / "package.json"
    manifest.write_text('{"name": "eslint"}', encoding="utf-8")
    with pytest.raises(EngineError):
        read_package_version(manifest)


def test_lint_text_reports_messages_and_runs_in_explicit_cwd(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    workdir = tmp_path / "src"
    workdir.mkdir()
    engine = _engine(package, workdir)

    results = engine.lint_text("foo;\n", file_path=str(workdir / "bad.js"))
    assert [message.rule_id for message in results[0].messages] == ["no-undef", "semi"]
    assert results[0].output is None

    call = read_calls(package)[-1]
    assert Path(str(call["cwd"])).resolve() == workdir.resolve()
    assert "json-with-metadata" in call["args"]
    assert "--no-ignore" not in call["args"]
    assert Path.cwd() != workdir


def test_rules_meta_combines_engine_metadata_and_core_fallbacks(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    engine = _engine(package, tmp_path)
    results = engine.lint_text("foo;\n", file_path=str(tmp_path / "bad.js"))
    rules = engine.get_rules_meta_for_results(results)
    assert rules["no-undef"] == {"docs": {"url": "https://eslint.org/docs/latest/rules/no-undef"}}
    assert rules["semi"] == {"docs": {"url": "https://eslint.org/docs/rules/semi"}}


def test_old_engines_use_plain_json_and_no_ignore(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path, version="7.5.0")
    engine = _engine(package, tmp_path, version="7.5.0", ignore=False)
    results = engine.lint_text("foo\n", file_path=str(tmp_path / "a.js"))
    assert len(results[0].messages) == 1
    args = read_calls(package)[-1]["args"]
    assert "json" in args
    assert "json-with-metadata" not in args
    assert "--no-ignore" in args


def test_fix_engine_applies_accepted_fixes(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    engine = _engine(package, tmp_path, fix=True)
    target = tmp_path / "a.js"
    results = engine.lint_text("var x = 1;\n", file_path=str(target))
    assert results[0].output == "let x = 1\n"
    assert results[0].messages == []


def test_fix_predicate_keeps_disabled_rules(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    engine = _engine(package, tmp_path, fix=partial(fix_allowed, frozenset({"no-var"})))
    results = engine.lint_text("var x = 1;\n", file_path=str(tmp_path / "a.js"))
    assert results[0].output == "var x = 1\n"
    assert [message.rule_id for message in results[0].messages] == ["no-var"]


def test_output_fixes_writes_only_changed_files(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    engine = _engine(package, tmp_path, fix=True)
    changed = tmp_path / "changed.js"
    clean = tmp_path / "clean.js"
    changed.write_text("var x = 1;\n", encoding="utf-8")
    clean.write_text("let y = 2\n", encoding="utf-8")
    before = clean.stat().st_mtime_ns

    results = engine.lint_files([str(changed), str(clean)])
    engine.output_fixes(results)
    assert changed.read_text(encoding="utf-8") == "let x = 1\n"
    assert clean.read_text(encoding="utf-8") == "let y = 2\n"
    assert clean.stat().st_mtime_ns == before


def test_missing_configuration_raises_config_not_found(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    with pytest.raises(ConfigNotFoundError, match="No ESLint configuration found"):
        _engine(package, tmp_path).lint_text("NO_CONFIG", file_path=str(tmp_path / "a.js"))


def test_engine_crash_raises_engine_error(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    with pytest.raises(EngineError, match="TypeError: boom"):
        _engine(package, tmp_path).lint_text("CRASH", file_path=str(tmp_path / "a.js"))


def test_invalid_node_binary_is_reported(tmp_path: Path) -> None:
    package = install_fake_eslint(tmp_path)
    validator = BinaryValidator()
    engine = EslintEngine(
        EngineInstallation(path=package, version="8.57.0"),
        EngineOptions(cwd=tmp_path),
        node_bin=str(tmp_path / "no-node"),
        validator=validator,
    )
    try:
        with pytest.raises(EngineError, match="Unable to run Node binary"):
            engine.lint_text("let a = 1\n", file_path=str(tmp_path / "a.js"))
    finally:
        validator.shutdown()
