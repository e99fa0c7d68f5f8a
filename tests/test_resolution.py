from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_file
from src.preview_build.errors import ModuleLoadError
from src.preview_build.resolution import ResolutionPipeline, dialect_for, is_relative_specifier


def test_direct_file_beats_index_file(tmp_path: Path) -> None:
    entry = write_file(tmp_path, "src/App.tsx", "")
    direct = write_file(tmp_path, "src/foo.tsx", "")
    write_file(tmp_path, "src/foo/index.ts", "")

    resolved = ResolutionPipeline(tmp_path).resolve("./foo", importer=str(entry))
    assert resolved.found is True
    assert resolved.path == str(direct.resolve())


def test_extension_order_prefers_tsx_over_js(tmp_path: Path) -> None:
    entry = write_file(tmp_path, "App.tsx", "")
    write_file(tmp_path, "util.js", "")
    tsx = write_file(tmp_path, "util.tsx", "")

    resolved = ResolutionPipeline(tmp_path).resolve("./util", importer=str(entry))
    assert resolved.path == str(tsx.resolve())


def test_index_fallback_for_directory(tmp_path: Path) -> None:
    entry = write_file(tmp_path, "App.tsx", "")
    index = write_file(tmp_path, "components/index.jsx", "")

    resolved = ResolutionPipeline(tmp_path).resolve("./components", importer=str(entry))
    assert resolved.found is True
    assert resolved.path == str(index.resolve())


def test_explicit_extension_is_used_as_is(tmp_path: Path) -> None:
    entry = write_file(tmp_path, "App.tsx", "")
    target = write_file(tmp_path, "data.js", "")

    resolved = ResolutionPipeline(tmp_path).resolve("./data.js", importer=str(entry))
    assert resolved.path == str(target.resolve())


def test_unresolved_specifier_passes_literal_path_through(tmp_path: Path) -> None:
    entry = write_file(tmp_path, "App.tsx", "")
    pipeline = ResolutionPipeline(tmp_path)

    resolved = pipeline.resolve("./missing", importer=str(entry))
    assert resolved.found is False
    assert resolved.outside_root is False
    assert resolved.path == str(tmp_path.resolve() / "missing")


def test_escaping_specifier_is_flagged_outside_root(tmp_path: Path) -> None:
    root = tmp_path / "app"
    entry = write_file(root, "App.tsx", "")
    write_file(tmp_path, "secret.js", "")

    resolved = ResolutionPipeline(root).resolve("../secret", importer=str(entry))
    assert resolved.outside_root is True
    assert resolved.found is False


def test_non_relative_specifier_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        ResolutionPipeline(tmp_path).resolve("react", importer=str(tmp_path / "App.tsx"))


def test_load_tags_dialect_and_reads_text(tmp_path: Path) -> None:
    path = write_file(tmp_path, "App.tsx", "export const x = 1;\n")
    loaded = ResolutionPipeline(tmp_path).load(str(path))
    assert loaded.dialect == "tsx"
    assert loaded.contents == "export const x = 1;\n"


def test_load_unknown_extension_names_the_file(tmp_path: Path) -> None:
    path = write_file(tmp_path, "styles.css", "body {}")
    with pytest.raises(ModuleLoadError) as exc:
        ResolutionPipeline(tmp_path).load(str(path))
    assert exc.value.path == str(path)
    assert ".css" in str(exc.value)


def test_load_missing_file_raises_module_load_error(tmp_path: Path) -> None:
    missing = str(tmp_path / "gone.ts")
    with pytest.raises(ModuleLoadError) as exc:
        ResolutionPipeline(tmp_path).load(missing)
    assert exc.value.path == missing


def test_load_outside_root_is_refused(tmp_path: Path) -> None:
    outside = write_file(tmp_path, "outside.js", "")
    with pytest.raises(ModuleLoadError):
        ResolutionPipeline(tmp_path / "app").load(str(outside))


def test_load_non_utf8_file(tmp_path: Path) -> None:
    path = tmp_path / "bad.js"
    path.write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(ModuleLoadError):
        ResolutionPipeline(tmp_path).load(str(path))


def test_relative_id_is_posix_relative(tmp_path: Path) -> None:
    path = write_file(tmp_path, "src/screens/Home.tsx", "")
    assert ResolutionPipeline(tmp_path).relative_id(str(path)) == "src/screens/Home.tsx"


def test_dialect_and_specifier_helpers() -> None:
    assert dialect_for("a/b.ts") == "ts"
    assert dialect_for("a/b.JSX") == "jsx"
    assert dialect_for("a/b.mjs") == "js"
    assert dialect_for("a/b.json") is None
    assert is_relative_specifier("./x") is True
    assert is_relative_specifier("../x") is True
    assert is_relative_specifier("react") is False
    assert is_relative_specifier("@scope/pkg") is False
