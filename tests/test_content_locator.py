from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import write_file
from src.preview_build.content_locator import (
    ContentLocator,
    ContentMatch,
    is_test_file,
    relevance_score,
    text_confidence,
)
from src.preview_build.models import ContentQuery


def _match(match_type: str, confidence: float) -> ContentMatch:
    return ContentMatch(
        file="f.tsx",
        line=1,
        column=1,
        line_text="",
        context_before=(),
        context_after=(),
        match_type=match_type,  # type: ignore[arg-type]
        confidence=confidence,
    )


def test_text_matches_outrank_attribute_matches() -> None:
    a = [_match("text", 0.9), _match("text", 0.9)]
    b = [_match("attribute", 0.5) for _ in range(5)]
    # A: 10*2 + 2*2 + 5*0.9 = 28.5; B: 0 + 2*5 + 5*0.5 = 12.5
    assert relevance_score(a) == pytest.approx(28.5)
    assert relevance_score(b) == pytest.approx(12.5)


def test_text_confidence_boosts() -> None:
    assert text_confidence("welcome home", "Welcome") == pytest.approx(0.5)
    assert text_confidence("Welcome home", "Welcome") == pytest.approx(0.8)
    assert text_confidence("<Text>Welcome</Text>", "Welcome") == pytest.approx(1.0)
    assert text_confidence("title = 'welcome'", "Welcome") == pytest.approx(0.6)


def test_locate_ranks_files_and_reports_lines(tmp_path: Path) -> None:
    write_file(
        tmp_path,
        "src/Home.tsx",
        "import React from 'react';\n"
        "export function Home() {\n"
        "  return (\n"
        "    <Text>Welcome back</Text>\n"
        "  );\n"
        "}\n",
    )
    write_file(tmp_path, "src/strings.ts", "// welcome back message lives in Home\n")
    write_file(tmp_path, "src/Other.tsx", "export const nothing = 1;\n")

    results = ContentLocator().locate(str(tmp_path), ContentQuery(text="Welcome back"))

    assert [r.file for r in results] == ["src/Home.tsx", "src/strings.ts"]
    top = results[0].matches[0]
    assert top.line == 4
    assert top.column == 11
    assert top.line_text == "<Text>Welcome back</Text>"
    assert top.context_before == ("export function Home() {", "  return (")
    assert top.context_after == ("  );", "}")
    assert top.match_type == "text"
    assert results[0].absolute_path.endswith("Home.tsx")


def test_locate_skips_dependency_dirs_and_test_files(tmp_path: Path) -> None:
    write_file(tmp_path, "node_modules/lib/index.js", "'Checkout now'\n")
    write_file(tmp_path, "src/Cart.test.tsx", "'Checkout now'\n")
    write_file(tmp_path, "dist/bundle.js", "'Checkout now'\n")
    write_file(tmp_path, "src/Cart.tsx", "<Button title='Checkout now' />\n")

    results = ContentLocator().locate(str(tmp_path), ContentQuery(text="Checkout now"))
    assert [r.file for r in results] == ["src/Cart.tsx"]


def test_class_and_attribute_matches(tmp_path: Path) -> None:
    write_file(
        tmp_path,
        "Card.jsx",
        '<div className="card primary-card">\n'
        '  <img data-testid="hero-image" />\n'
        "</div>\n",
    )
    query = ContentQuery(class_tokens="card primary-card xs", attributes={"data-testid": "hero-image"})

    [result] = ContentLocator().locate(str(tmp_path), query)
    kinds = [(m.match_type, m.line) for m in result.matches]
    assert ("class", 1) in kinds
    assert ("attribute", 2) in kinds
    attr = next(m for m in result.matches if m.match_type == "attribute")
    assert attr.attribute == "data-testid"
    assert attr.confidence == pytest.approx(0.9)


def test_short_fragments_are_ignored(tmp_path: Path) -> None:
    write_file(tmp_path, "A.tsx", "<Text>ok</Text>\n")
    assert ContentLocator().locate(str(tmp_path), ContentQuery(text="ok")) == []


def test_alt_text_search(tmp_path: Path) -> None:
    write_file(tmp_path, "Logo.tsx", '<Image alt="Company logo" />\n')
    [result] = ContentLocator().locate(str(tmp_path), ContentQuery(alt_text="Company logo"))
    assert result.matches[0].match_type == "altText"


def test_missing_workspace_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        ContentLocator().locate(str(tmp_path / "nope"), ContentQuery(text="hello"))


def test_empty_query_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ContentQuery()
    with pytest.raises(ValidationError):
        ContentQuery(text="   ", attributes={"id": ""})


def test_is_test_file() -> None:
    assert is_test_file("Home.test.tsx") is True
    assert is_test_file("Home.spec.js") is True
    assert is_test_file("Home.tsx") is False


def test_get_stats_reports_search_settings() -> None:
    stats = ContentLocator(context_lines=4).get_stats()
    assert stats["supported_extensions"] == [".tsx", ".jsx", ".ts", ".js"]
    assert "node_modules" in stats["skip_dirs"]
    assert "Home.test.tsx".endswith(tuple(stats["test_file_suffixes"]))
    assert stats["context_lines"] == 4
