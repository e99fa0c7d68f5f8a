from src.preview_build.bundle_cache import BundleCache, BundleCacheEntry
from src.preview_build.bundler import Bundler, BuildResult
from src.preview_build.content_locator import ContentLocator, ContentMatch, FileMatches
from src.preview_build.errors import (
    BuildDiagnostic,
    BuildError,
    BuildFailedError,
    BuildTimeoutError,
    ModuleLoadError,
    UnknownSessionError,
)
from src.preview_build.mocks import MockRegistry, MockRule, default_registry
from src.preview_build.models import BuildRequest, ContentQuery
from src.preview_build.resolution import ResolutionPipeline
from src.preview_build.service import PreviewService
from src.preview_build.watch_registry import ChangeEvent, WatchRegistry, WatchSession

__all__ = [
    "BuildDiagnostic",
    "BuildError",
    "BuildFailedError",
    "BuildRequest",
    "BuildResult",
    "BuildTimeoutError",
    "BundleCache",
    "BundleCacheEntry",
    "Bundler",
    "ChangeEvent",
    "ContentLocator",
    "ContentMatch",
    "ContentQuery",
    "FileMatches",
    "MockRegistry",
    "MockRule",
    "ModuleLoadError",
    "PreviewService",
    "ResolutionPipeline",
    "UnknownSessionError",
    "WatchRegistry",
    "WatchSession",
    "default_registry",
]
