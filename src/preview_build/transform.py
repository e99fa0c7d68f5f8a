from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Protocol

from src.preview_build.errors import TransformError
from src.preview_build.resolution import Dialect

logger = logging.getLogger(__name__)

_MAX_STDERR_CHARS = 4000


class Transformer(Protocol):
    def transform(self, source: str, *, dialect: Dialect, path: str) -> str: ...


def _decode_output(b: bytes) -> str:
    return b.decode("utf-8", errors="replace")


class PassthroughTransformer:
    """Returns sources unchanged; for workspaces that already ship CommonJS."""

    def transform(self, source: str, *, dialect: Dialect, path: str) -> str:
        _ = (dialect, path)
        return source


class EsbuildTransformer:
    """Per-file transform through the esbuild CLI (stdin in, CommonJS out)."""

    def __init__(self, *, esbuild_bin: str = "esbuild", timeout_s: int = 30) -> None:
        self._bin = esbuild_bin
        self._timeout_s = timeout_s

    def _args(self, *, dialect: Dialect, path: str) -> list[str]:
        return [
            self._bin,
            f"--loader={dialect}",
            "--format=cjs",
            "--jsx=automatic",
            "--target=es2018",
            f"--sourcefile={path}",
            "--log-level=error",
        ]

    def transform(self, source: str, *, dialect: Dialect, path: str) -> str:
        if shutil.which(self._bin) is None:
            raise TransformError(f"esbuild executable not found: {self._bin}", path=path)
        try:
            proc = subprocess.run(
                self._args(dialect=dialect, path=path),
                input=source.encode("utf-8"),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=float(self._timeout_s),
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise TransformError(
                f"transform timed out after {self._timeout_s}s", path=path
            ) from exc

        if proc.returncode != 0:
            stderr = _decode_output(proc.stderr)[:_MAX_STDERR_CHARS]
            first = next((ln for ln in stderr.splitlines() if ln.strip()), "")
            raise TransformError(
                first or f"esbuild exited with code {proc.returncode}",
                path=path,
                stderr=stderr,
            )
        return _decode_output(proc.stdout)
