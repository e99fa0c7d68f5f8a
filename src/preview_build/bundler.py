"""Module-graph bundler for session previews.

Walks the import graph from an entry file, resolves relative specifiers through
ResolutionPipeline, substitutes sandbox-unsafe packages through MockRegistry and
emits one self-contained script. Every failure is collected as a file-attributed
BuildDiagnostic; processing continues with the remaining modules and the build
fails at the end if any error was collected.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from src.preview_build.config import BuildTarget
from src.preview_build.errors import BuildDiagnostic, BuildError, ModuleLoadError, TransformError
from src.preview_build.mocks import MockRegistry
from src.preview_build.resolution import ResolutionPipeline, is_relative_specifier
from src.preview_build.transform import PassthroughTransformer, Transformer

logger = logging.getLogger(__name__)

_REQUIRE_RE = re.compile(r"""\brequire\(\s*(['"])([^'"\n]+)\1\s*\)""")
_DYNAMIC_IMPORT_RE = re.compile(r"""\bimport\(\s*(['"])([^'"\n]+)\1\s*\)""")
_STATIC_IMPORT_RE = re.compile(
    r"""(?m)^\s*(?:import|export)\s+(?:[^'";]*?\s+from\s+)?(['"])([^'"\n]+)\1"""
)

MOCK_PREFIX = "mock:"
EXTERNAL_PREFIX = "external:"


def scan_specifiers(code: str) -> list[str]:
    """Return import specifiers in first-seen order, without duplicates."""
    found: list[tuple[int, str]] = []
    for rx in (_STATIC_IMPORT_RE, _REQUIRE_RE, _DYNAMIC_IMPORT_RE):
        for m in rx.finditer(code):
            found.append((m.start(2), m.group(2)))
    found.sort(key=lambda it: it[0])

    out: list[str] = []
    seen: set[str] = set()
    for _, spec in found:
        if spec not in seen:
            seen.add(spec)
            out.append(spec)
    return out


def _sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class BuildResult:
    code: str
    build_time_ms: int
    size_bytes: int
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class _ModuleRecord:
    module_id: str
    code: str
    deps: dict[str, str] = field(default_factory=dict)


class Bundler:
    def __init__(
        self,
        *,
        mocks: MockRegistry | None = None,
        transformer: Transformer | None = None,
        target: BuildTarget = "sandbox",
    ) -> None:
        self._mocks = mocks
        self._transformer = transformer or PassthroughTransformer()
        self._target = target

    @property
    def target(self) -> BuildTarget:
        return self._target

    def _resolve_bare(
        self,
        specifier: str,
        *,
        importer_id: str,
        modules: dict[str, _ModuleRecord],
        mocked: dict[str, str],
        externals: list[str],
        warnings: list[BuildDiagnostic],
    ) -> str:
        if self._target == "sandbox" and self._mocks is not None:
            resolution = self._mocks.resolve(specifier)
            if resolution is not None:
                module_id = MOCK_PREFIX + specifier
                if module_id not in modules:
                    modules[module_id] = _ModuleRecord(module_id=module_id, code=resolution.source)
                    mocked[specifier] = resolution.rule.name
                return module_id
            if self._mocks.is_reserved(specifier):
                logger.error(
                    "Mock gap: %r (imported by %s) matched no mock rule; leaving it external",
                    specifier,
                    importer_id,
                )
                warnings.append(
                    BuildDiagnostic(
                        file=specifier,
                        kind="mock_gap",
                        message="package matched no mock rule",
                        importer=importer_id,
                    )
                )
        if specifier not in externals:
            externals.append(specifier)
        return EXTERNAL_PREFIX + specifier

    def build(self, *, root_path: str, entry_path: str) -> BuildResult:
        started = time.monotonic()
        pipeline = ResolutionPipeline(root_path)
        entry_abs = entry_path
        if not os.path.isabs(entry_abs):
            entry_abs = os.path.join(str(pipeline.root), entry_abs)
        entry_abs = os.path.normpath(entry_abs)
        entry_id = pipeline.relative_id(entry_abs)

        logger.info("Building %s (target=%s)", entry_id, self._target)

        modules: dict[str, _ModuleRecord] = {}
        diagnostics: list[BuildDiagnostic] = []
        warnings: list[BuildDiagnostic] = []
        mocked: dict[str, str] = {}
        externals: list[str] = []

        queue: deque[str] = deque([entry_abs])
        queued: set[str] = {entry_id}

        while queue:
            path = queue.popleft()
            module_id = pipeline.relative_id(path)
            try:
                loaded = pipeline.load(path)
            except ModuleLoadError as exc:
                diagnostics.append(
                    BuildDiagnostic(file=pipeline.relative_id(exc.path), kind="load", message=str(exc))
                )
                continue

            try:
                code = self._transformer.transform(
                    loaded.contents, dialect=loaded.dialect, path=module_id
                )
            except TransformError as exc:
                diagnostics.append(
                    BuildDiagnostic(file=module_id, kind="transform", message=str(exc))
                )
                # Keep walking the raw source so sibling modules are still checked.
                code = loaded.contents

            record = _ModuleRecord(module_id=module_id, code=code)
            modules[module_id] = record

            for spec in scan_specifiers(code):
                if is_relative_specifier(spec):
                    resolved = pipeline.resolve(spec, importer=path)
                    if resolved.outside_root:
                        diagnostics.append(
                            BuildDiagnostic(
                                file=module_id,
                                kind="path",
                                message=f"import {spec!r} resolves outside the session root",
                            )
                        )
                        continue
                    if not resolved.found:
                        diagnostics.append(
                            BuildDiagnostic(
                                file=module_id,
                                kind="resolve",
                                message=f"could not resolve {spec!r}",
                            )
                        )
                        continue
                    dep_id = pipeline.relative_id(resolved.path)
                    record.deps[spec] = dep_id
                    if dep_id not in queued:
                        queued.add(dep_id)
                        queue.append(resolved.path)
                else:
                    record.deps[spec] = self._resolve_bare(
                        spec,
                        importer_id=module_id,
                        modules=modules,
                        mocked=mocked,
                        externals=externals,
                        warnings=warnings,
                    )

        if diagnostics:
            logger.warning(
                "Build of %s failed with %d diagnostic(s)", entry_id, len(diagnostics)
            )
            raise BuildError(diagnostics)

        code = render_bundle(modules, entry_id=entry_id)
        build_time_ms = int((time.monotonic() - started) * 1000)
        source_modules = sorted(
            m for m in modules if not m.startswith((MOCK_PREFIX, EXTERNAL_PREFIX))
        )
        meta: dict[str, Any] = {
            "entry": entry_id,
            "target": self._target,
            "modules": source_modules,
            "mocked": dict(sorted(mocked.items())),
            "externals": sorted(externals),
            "warnings": [w.to_dict() for w in warnings],
            "sha256": _sha256_text(code),
        }
        logger.info(
            "Built %s: %d module(s), %d mock(s), %d external(s) in %dms",
            entry_id,
            len(source_modules),
            len(mocked),
            len(externals),
            build_time_ms,
        )
        return BuildResult(
            code=code,
            build_time_ms=build_time_ms,
            size_bytes=len(code.encode("utf-8")),
            meta=meta,
        )


def render_bundle(modules: dict[str, _ModuleRecord], *, entry_id: str) -> str:
    parts: list[str] = []
    for module_id in sorted(modules):
        rec = modules[module_id]
        deps = json.dumps(rec.deps, sort_keys=True, separators=(",", ":"))
        parts.append(
            f"{json.dumps(module_id)}:[function(module,exports,require){{\n{rec.code}\n}},{deps}]"
        )
    table = ",\n".join(parts)
    return (
        "(function(){\n"
        f"var __modules={{\n{table}\n}};\n"
        "var __g=(typeof window!=='undefined'?window:globalThis);\n"
        "var __externals=__g.__PREVIEW_EXTERNALS__||{};\n"
        "var __cache={};\n"
        "function __load(id){\n"
        "  if(__cache[id]) return __cache[id].exports;\n"
        "  var def=__modules[id];\n"
        "  if(!def) throw new Error('Module not found in preview bundle: '+id);\n"
        "  var module={exports:{}};\n"
        "  __cache[id]=module;\n"
        "  def[0].call(module.exports,module,module.exports,function(spec){\n"
        "    var target=def[1][spec];\n"
        "    if(target===undefined) throw new Error('Cannot resolve '+spec+' from '+id);\n"
        f"    if(target.indexOf({json.dumps(EXTERNAL_PREFIX)})===0){{\n"
        f"      var name=target.slice({len(EXTERNAL_PREFIX)});\n"
        "      if(name in __externals) return __externals[name];\n"
        "      throw new Error('Module '+name+' is not available in the preview sandbox');\n"
        "    }\n"
        "    return __load(target);\n"
        "  });\n"
        "  return module.exports;\n"
        "}\n"
        f"var __entry=__load({json.dumps(entry_id)});\n"
        "__g.__PREVIEW_BUNDLE__={\n"
        f"  entry:{json.dumps(entry_id)},\n"
        "  exports:__entry,\n"
        "  default:(__entry&&__entry.default!==undefined)?__entry.default:__entry\n"
        "};\n"
        "})();\n"
    )
