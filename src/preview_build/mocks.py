"""Ordered mock-substitution rules for sandbox-target builds.

Rules are kept as an ordered list of (predicate, generator) pairs. Lookup
sorts by specificity (exact, then prefix, then catch-all) and keeps
registration order inside each class, so the first registered rule wins a tie.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from src.preview_build import stand_ins

logger = logging.getLogger(__name__)

MatcherKind = Literal["exact", "prefix", "catch_all"]

_SPECIFICITY: dict[MatcherKind, int] = {"exact": 0, "prefix": 1, "catch_all": 2}

# Reserved namespaces: any package under these prefixes must never reach the
# sandbox unmocked.
RESERVED_NAMESPACES: tuple[str, ...] = ("@react-native", "react-native-", "@wix/")


@dataclass(frozen=True)
class MockRule:
    name: str
    kind: MatcherKind
    patterns: tuple[str, ...]
    generator: Callable[[str], str]
    priority: int = 0

    def matches(self, specifier: str) -> bool:
        if self.kind == "exact":
            return specifier in self.patterns
        return any(specifier.startswith(p) for p in self.patterns)


@dataclass(frozen=True)
class MockResolution:
    specifier: str
    rule: MockRule
    source: str


class MockRegistry:
    def __init__(self, rules: list[MockRule] | None = None) -> None:
        self._rules: list[MockRule] = []
        for rule in rules or []:
            self.register(rule)

    def register(self, rule: MockRule) -> None:
        if not rule.patterns:
            raise ValueError(f"mock rule {rule.name!r} has no patterns")
        self._rules.append(rule)

    @property
    def rules(self) -> list[MockRule]:
        """Rules in evaluation order."""
        indexed = list(enumerate(self._rules))
        indexed.sort(key=lambda it: (_SPECIFICITY[it[1].kind], -it[1].priority, it[0]))
        return [rule for _, rule in indexed]

    def match(self, specifier: str) -> MockRule | None:
        for rule in self.rules:
            if rule.matches(specifier):
                return rule
        return None

    def resolve(self, specifier: str) -> MockResolution | None:
        rule = self.match(specifier)
        if rule is None:
            return None
        if rule.kind == "catch_all":
            logger.warning(
                "No specific mock for %r; substituting an empty module (rule %s)",
                specifier,
                rule.name,
            )
        else:
            logger.debug("Mocking %r via rule %s", specifier, rule.name)
        return MockResolution(specifier=specifier, rule=rule, source=rule.generator(specifier))

    def is_reserved(self, specifier: str) -> bool:
        return any(specifier.startswith(ns) for ns in RESERVED_NAMESPACES)


def _global_shim(specifier: str) -> str:
    return stand_ins.render_global_shim(specifier, stand_ins.GLOBAL_SHIMS[specifier])


def default_rules() -> list[MockRule]:
    return [
        MockRule(
            name="framework-globals",
            kind="exact",
            patterns=tuple(stand_ins.GLOBAL_SHIMS),
            generator=_global_shim,
        ),
        MockRule(
            name="async-storage",
            kind="prefix",
            patterns=("@react-native-async-storage/",),
            generator=lambda _s: stand_ins.render_async_storage(),
        ),
        MockRule(
            name="cookies",
            kind="prefix",
            patterns=("@react-native-cookies/",),
            generator=lambda _s: stand_ins.render_cookies(),
        ),
        MockRule(
            name="reanimated",
            kind="prefix",
            patterns=("react-native-reanimated",),
            generator=lambda _s: stand_ins.render_reanimated(),
        ),
        MockRule(
            name="gesture-handler",
            kind="prefix",
            patterns=("react-native-gesture-handler",),
            generator=lambda _s: stand_ins.render_gesture_handler(),
        ),
        MockRule(
            name="safe-area-context",
            kind="prefix",
            patterns=("react-native-safe-area-context",),
            generator=lambda _s: stand_ins.render_safe_area_context(),
        ),
        MockRule(
            name="device-info",
            kind="prefix",
            patterns=("react-native-device-info",),
            generator=lambda _s: stand_ins.render_device_info(),
        ),
        MockRule(
            name="webview",
            kind="prefix",
            patterns=("react-native-webview",),
            generator=lambda _s: stand_ins.render_webview(),
        ),
        MockRule(
            name="wix-sdk",
            kind="prefix",
            patterns=(
                "@wix/wix-data-items-sdk",
                "@wix/wix-stores-sdk",
                "@wix/wix-bookings-sdk",
                "@wix/wix-members-sdk",
            ),
            generator=stand_ins.render_sdk_stub,
        ),
        MockRule(
            name="reserved-namespace",
            kind="catch_all",
            patterns=RESERVED_NAMESPACES,
            generator=stand_ins.render_empty_module,
        ),
    ]


def default_registry() -> MockRegistry:
    return MockRegistry(default_rules())
