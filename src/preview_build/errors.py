from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

DiagnosticKind = Literal["resolve", "load", "transform", "mock_gap", "path"]


@dataclass(frozen=True)
class BuildDiagnostic:
    file: str
    kind: DiagnosticKind
    message: str
    importer: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "file": self.file,
            "kind": self.kind,
            "message": self.message,
            "importer": self.importer,
        }

    def __str__(self) -> str:
        where = self.file
        if self.importer:
            where = f"{self.file} (imported by {self.importer})"
        return f"[{self.kind}] {where}: {self.message}"


class ModuleLoadError(RuntimeError):
    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


class TransformError(RuntimeError):
    def __init__(self, message: str, *, path: str, stderr: str = "") -> None:
        super().__init__(message)
        self.path = path
        self.stderr = stderr


class BuildError(RuntimeError):
    """A build finished with file-attributed diagnostics instead of a bundle."""

    def __init__(self, diagnostics: list[BuildDiagnostic]) -> None:
        self.diagnostics = list(diagnostics)
        head = str(self.diagnostics[0]) if self.diagnostics else "unknown build failure"
        more = len(self.diagnostics) - 1
        suffix = f" (+{more} more)" if more > 0 else ""
        super().__init__(f"build failed: {head}{suffix}")


class BuildFailedError(RuntimeError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Build completed but no result found for session '{session_id}'")
        self.session_id = session_id


class BuildTimeoutError(RuntimeError):
    def __init__(self, session_id: str, timeout_s: float) -> None:
        super().__init__(
            f"Timed out after {timeout_s:g}s waiting for build of session '{session_id}'"
        )
        self.session_id = session_id
        self.timeout_s = timeout_s


class UnknownSessionError(LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"unknown session '{session_id}'")
        self.session_id = session_id
