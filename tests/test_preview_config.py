from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_file
from src.preview_build.config import PreviewBuildSettings, parse_build_target
from src.preview_build.entry_points import discover_entry
from src.preview_build.errors import TransformError
from src.preview_build.transform import EsbuildTransformer, PassthroughTransformer


def test_settings_defaults() -> None:
    s = PreviewBuildSettings.from_env()
    assert s.build_target == "sandbox"
    assert s.wait_for_build_timeout_s == 120.0
    assert s.auto_rebuild is False
    assert s.auto_rebuild_debounce_ms == 1000
    assert s.watch_ignore_dotfiles is True


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PREVIEW_BUILD_TARGET", "HOST")
    monkeypatch.setenv("PREVIEW_WAIT_FOR_BUILD_TIMEOUT_S", "0")
    monkeypatch.setenv("PREVIEW_AUTO_REBUILD", "yes")
    monkeypatch.setenv("PREVIEW_AUTO_REBUILD_DEBOUNCE_MS", "250")
    monkeypatch.setenv("PREVIEW_LOCATOR_CONTEXT_LINES", "not-a-number")

    s = PreviewBuildSettings.from_env()
    assert s.build_target == "host"
    assert s.wait_for_build_timeout_s is None
    assert s.auto_rebuild is True
    assert s.auto_rebuild_debounce_ms == 250
    assert s.locator_context_lines == 2


def test_unknown_build_target_falls_back_to_sandbox() -> None:
    assert parse_build_target("browser") == "sandbox"
    assert parse_build_target(None) == "sandbox"


def test_discover_entry_prefers_src_app(tmp_path: Path) -> None:
    write_file(tmp_path, "index.js", "")
    write_file(tmp_path, "src/index.tsx", "")
    app = write_file(tmp_path, "src/App.js", "")
    assert discover_entry(str(tmp_path)) == str(app.resolve())


def test_discover_entry_without_candidates(tmp_path: Path) -> None:
    write_file(tmp_path, "main.ts", "")
    with pytest.raises(FileNotFoundError):
        discover_entry(str(tmp_path))


def test_passthrough_transformer_returns_source() -> None:
    src = "module.exports = 1;"
    assert PassthroughTransformer().transform(src, dialect="js", path="a.js") == src


def test_missing_esbuild_binary_is_a_transform_error() -> None:
    transformer = EsbuildTransformer(esbuild_bin="esbuild-binary-that-does-not-exist")
    with pytest.raises(TransformError) as exc:
        transformer.transform("const a = 1;", dialect="ts", path="a.ts")
    assert exc.value.path == "a.ts"
