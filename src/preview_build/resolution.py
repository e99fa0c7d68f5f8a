"""Relative import resolution and dialect-tagged source loading.

Resolution order for an extensionless specifier is part of the contract: the
literal path with each extension in RESOLVE_EXTENSIONS order, then
`<path>/index.<ext>` in the same order. A direct file therefore always beats
an index file in a directory of the same name.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from src.preview_build.errors import ModuleLoadError
from src.preview_build.paths import is_within_root, resolve_root

logger = logging.getLogger(__name__)

Dialect = Literal["tsx", "ts", "jsx", "js"]

RESOLVE_EXTENSIONS: tuple[str, ...] = (".tsx", ".ts", ".jsx", ".js")

_DIALECT_BY_EXTENSION: dict[str, Dialect] = {
    ".tsx": "tsx",
    ".ts": "ts",
    ".jsx": "jsx",
    ".js": "js",
    ".mjs": "js",
    ".cjs": "js",
}


@dataclass(frozen=True)
class ResolvedImport:
    specifier: str
    importer: str
    path: str
    # False when no candidate existed and the literal path was passed through.
    found: bool
    outside_root: bool = False


@dataclass(frozen=True)
class LoadedModule:
    path: str
    contents: str
    dialect: Dialect


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or specifier in (".", "..")


def dialect_for(path: str) -> Dialect | None:
    return _DIALECT_BY_EXTENSION.get(os.path.splitext(path)[1].lower())


class ResolutionPipeline:
    """Resolves relative specifiers inside one session root and loads sources."""

    def __init__(
        self,
        root_path: str | os.PathLike[str],
        *,
        extensions: tuple[str, ...] = RESOLVE_EXTENSIONS,
    ) -> None:
        self._root = resolve_root(root_path)
        self._extensions = tuple(extensions)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def extensions(self) -> tuple[str, ...]:
        return self._extensions

    def _candidates(self, base: str) -> list[str]:
        if os.path.splitext(base)[1]:
            # An explicit extension is tried as-is before probing.
            out = [base]
        else:
            out = []
        out.extend(base + ext for ext in self._extensions)
        out.extend(os.path.join(base, "index" + ext) for ext in self._extensions)
        return out

    def resolve(self, specifier: str, *, importer: str) -> ResolvedImport:
        if not is_relative_specifier(specifier):
            raise ValueError(f"not a relative specifier: {specifier!r}")

        base_dir = os.path.dirname(os.path.abspath(importer))
        base = os.path.normpath(os.path.join(base_dir, specifier))

        if not is_within_root(base, self._root):
            logger.warning(
                "Import %r from %s escapes the session root; not resolving",
                specifier,
                importer,
            )
            return ResolvedImport(
                specifier=specifier,
                importer=importer,
                path=base,
                found=False,
                outside_root=True,
            )

        for candidate in self._candidates(base):
            if os.path.isfile(candidate) and is_within_root(candidate, self._root):
                return ResolvedImport(
                    specifier=specifier, importer=importer, path=candidate, found=True
                )

        # Unresolved: hand the literal path on so the load step reports it.
        logger.debug("Unresolved import %r from %s", specifier, importer)
        return ResolvedImport(specifier=specifier, importer=importer, path=base, found=False)

    def load(self, path: str) -> LoadedModule:
        if not is_within_root(path, self._root):
            raise ModuleLoadError("path is outside the session root", path=path)

        dialect = dialect_for(path)
        if dialect is None:
            ext = os.path.splitext(path)[1] or "<none>"
            raise ModuleLoadError(f"unsupported file extension {ext}", path=path)

        try:
            with open(path, encoding="utf-8") as fh:
                contents = fh.read()
        except FileNotFoundError as exc:
            raise ModuleLoadError("file not found", path=path) from exc
        except UnicodeDecodeError as exc:
            raise ModuleLoadError("file is not valid UTF-8 text", path=path) from exc
        except OSError as exc:
            raise ModuleLoadError(f"unable to read file: {exc.strerror or exc}", path=path) from exc

        return LoadedModule(path=path, contents=contents, dialect=dialect)

    def relative_id(self, path: str) -> str:
        """Stable module id for a file: its POSIX path relative to the root."""
        try:
            return Path(os.path.normpath(os.path.abspath(path))).relative_to(self._root).as_posix()
        except ValueError:
            return Path(path).as_posix()
