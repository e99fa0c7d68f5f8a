"""Reverse lookup from rendered content to candidate source lines.

The locator is a ranked, best-effort search over raw session files: callers
get a list ordered by relevance, never a single authoritative answer.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Literal

from src.preview_build.models import ContentQuery
from src.preview_build.paths import resolve_root

logger = logging.getLogger(__name__)

MatchType = Literal["text", "altText", "class", "attribute"]

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".tsx", ".jsx", ".ts", ".js")
SKIP_DIRS: tuple[str, ...] = ("node_modules", ".git", "dist", "build")
TEST_FILE_SUFFIXES: tuple[str, ...] = tuple(
    f"{kind}{ext}" for kind in (".test", ".spec") for ext in SUPPORTED_EXTENSIONS
)

# Tunable scoring constants.
TEXT_BASE_CONFIDENCE = 0.5
EXACT_CASE_BOOST = 0.3
MARKUP_LINE_BOOST = 0.2
QUOTED_LINE_BOOST = 0.1
CLASS_CONFIDENCE = 0.8
ATTRIBUTE_CONFIDENCE = 0.9
TEXT_MATCH_WEIGHT = 10.0
MATCH_COUNT_WEIGHT = 2.0
CONFIDENCE_WEIGHT = 5.0

MIN_TEXT_CHARS = 3
MIN_CLASS_TOKEN_CHARS = 4
MIN_ATTRIBUTE_VALUE_CHARS = 3

_QUOTE_RE = re.compile(r"['\"`]")


@dataclass(frozen=True)
class ContentMatch:
    file: str
    line: int
    column: int
    line_text: str
    context_before: tuple[str, ...]
    context_after: tuple[str, ...]
    match_type: MatchType
    confidence: float
    attribute: str | None = None


@dataclass(frozen=True)
class FileMatches:
    file: str
    absolute_path: str
    matches: tuple[ContentMatch, ...]

    @property
    def score(self) -> float:
        return relevance_score(self.matches)


def text_confidence(line: str, needle: str) -> float:
    confidence = TEXT_BASE_CONFIDENCE
    if needle in line:
        confidence += EXACT_CASE_BOOST
    if "<" in line and ">" in line:
        confidence += MARKUP_LINE_BOOST
    if _QUOTE_RE.search(line):
        confidence += QUOTED_LINE_BOOST
    return min(confidence, 1.0)


def relevance_score(matches: tuple[ContentMatch, ...] | list[ContentMatch]) -> float:
    if not matches:
        return 0.0
    text_matches = sum(1 for m in matches if m.match_type in ("text", "altText"))
    avg_confidence = sum(m.confidence for m in matches) / len(matches)
    return (
        TEXT_MATCH_WEIGHT * text_matches
        + MATCH_COUNT_WEIGHT * len(matches)
        + CONFIDENCE_WEIGHT * avg_confidence
    )


def is_test_file(name: str) -> bool:
    lower = name.lower()
    return any(lower.endswith(suffix) for suffix in TEST_FILE_SUFFIXES)


class ContentLocator:
    def __init__(self, *, context_lines: int = 2) -> None:
        self._context_lines = max(0, int(context_lines))

    def iter_source_files(self, root_path: str) -> list[str]:
        """Candidate files under the root in sorted, deterministic order."""
        root = resolve_root(root_path)
        if not root.is_dir():
            raise FileNotFoundError(f"workspace not found: {root}")

        out: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames if d not in SKIP_DIRS and not d.startswith(".")
            )
            for name in sorted(filenames):
                if name.startswith(".") or is_test_file(name):
                    continue
                if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                    out.append(os.path.join(dirpath, name))
        return out

    def _context(self, lines: list[str], index: int) -> tuple[tuple[str, ...], tuple[str, ...]]:
        n = self._context_lines
        before = tuple(lines[max(0, index - n) : index])
        after = tuple(lines[index + 1 : index + 1 + n])
        return before, after

    def _match(
        self,
        *,
        rel: str,
        lines: list[str],
        index: int,
        column: int,
        match_type: MatchType,
        confidence: float,
        attribute: str | None = None,
    ) -> ContentMatch:
        before, after = self._context(lines, index)
        return ContentMatch(
            file=rel,
            line=index + 1,
            column=column + 1,
            line_text=lines[index].strip(),
            context_before=before,
            context_after=after,
            match_type=match_type,
            confidence=confidence,
            attribute=attribute,
        )

    def _find_text(
        self, rel: str, lines: list[str], needle: str, match_type: MatchType
    ) -> list[ContentMatch]:
        lowered = needle.lower()
        out: list[ContentMatch] = []
        for i, line in enumerate(lines):
            col = line.lower().find(lowered)
            if col == -1:
                continue
            out.append(
                self._match(
                    rel=rel,
                    lines=lines,
                    index=i,
                    column=col,
                    match_type=match_type,
                    confidence=text_confidence(line, needle),
                )
            )
        return out

    def _find_regex(
        self,
        rel: str,
        lines: list[str],
        rx: re.Pattern[str],
        match_type: MatchType,
        confidence: float,
        attribute: str | None = None,
    ) -> list[ContentMatch]:
        out: list[ContentMatch] = []
        for i, line in enumerate(lines):
            m = rx.search(line)
            if m is None:
                continue
            out.append(
                self._match(
                    rel=rel,
                    lines=lines,
                    index=i,
                    column=m.start(),
                    match_type=match_type,
                    confidence=confidence,
                    attribute=attribute,
                )
            )
        return out

    def search_text(self, rel: str, content: str, query: ContentQuery) -> list[ContentMatch]:
        lines = content.split("\n")
        matches: list[ContentMatch] = []

        text = (query.text or "").strip()
        if len(text) >= MIN_TEXT_CHARS:
            matches.extend(self._find_text(rel, lines, text, "text"))

        alt = (query.alt_text or "").strip()
        if len(alt) >= MIN_TEXT_CHARS and alt != text:
            matches.extend(self._find_text(rel, lines, alt, "altText"))

        for token in (query.class_tokens or "").split():
            if len(token) < MIN_CLASS_TOKEN_CHARS:
                continue
            rx = re.compile(
                r"""\b(?:class|className)=['"][^'"]*""" + re.escape(token) + r"""[^'"]*['"]""",
                re.IGNORECASE,
            )
            matches.extend(self._find_regex(rel, lines, rx, "class", CLASS_CONFIDENCE))

        for name, value in query.attributes.items():
            v = str(value or "")
            if len(v) < MIN_ATTRIBUTE_VALUE_CHARS or not name.strip():
                continue
            rx = re.compile(
                re.escape(name.strip()) + r"""=['"]""" + re.escape(v) + r"""['"]""",
                re.IGNORECASE,
            )
            matches.extend(
                self._find_regex(rel, lines, rx, "attribute", ATTRIBUTE_CONFIDENCE, attribute=name)
            )

        return matches

    def locate(self, root_path: str, query: ContentQuery) -> list[FileMatches]:
        root = str(resolve_root(root_path))
        results: list[FileMatches] = []
        for path in self.iter_source_files(root):
            rel = os.path.relpath(path, root).replace(os.sep, "/")
            try:
                with open(path, encoding="utf-8") as fh:
                    content = fh.read()
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable file %s: %s", rel, exc)
                continue
            matches = self.search_text(rel, content, query)
            if matches:
                results.append(FileMatches(file=rel, absolute_path=path, matches=tuple(matches)))

        # Stable sort keeps path order between equal scores.
        results.sort(key=lambda r: r.score, reverse=True)
        logger.info("Content lookup in %s matched %d file(s)", root, len(results))
        return results

    def get_stats(self) -> dict[str, object]:
        return {
            "supported_extensions": list(SUPPORTED_EXTENSIONS),
            "skip_dirs": list(SKIP_DIRS),
            "test_file_suffixes": list(TEST_FILE_SUFFIXES),
            "context_lines": self._context_lines,
        }
