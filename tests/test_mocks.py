from __future__ import annotations

import logging

import pytest

from src.preview_build.mocks import MockRegistry, MockRule, default_registry


def _rule(name: str, kind: str, *patterns: str, priority: int = 0) -> MockRule:
    return MockRule(
        name=name,
        kind=kind,  # type: ignore[arg-type]
        patterns=tuple(patterns),
        generator=lambda spec, n=name: f"// {n}:{spec}",
        priority=priority,
    )


def test_specific_prefix_rule_beats_catch_all() -> None:
    registry = default_registry()
    resolution = registry.resolve("@react-native-async-storage/async-storage")
    assert resolution is not None
    assert resolution.rule.name == "async-storage"
    assert "localStorage" in resolution.source


def test_exact_rule_beats_catch_all_for_react_native_web() -> None:
    rule = default_registry().match("react-native-web")
    assert rule is not None
    assert rule.name == "framework-globals"


def test_unknown_reserved_package_falls_to_catch_all(caplog: pytest.LogCaptureFixture) -> None:
    registry = default_registry()
    with caplog.at_level(logging.WARNING, logger="src.preview_build.mocks"):
        resolution = registry.resolve("react-native-fancy-widget")
    assert resolution is not None
    assert resolution.rule.name == "reserved-namespace"
    assert "react-native-fancy-widget" in caplog.text


def test_non_reserved_package_is_not_mocked() -> None:
    registry = default_registry()
    assert registry.resolve("lodash") is None
    assert registry.is_reserved("lodash") is False
    assert registry.is_reserved("@wix/anything") is True


def test_order_is_exact_then_prefix_then_catch_all() -> None:
    registry = MockRegistry(
        [
            _rule("catch", "catch_all", "pkg"),
            _rule("prefix", "prefix", "pkg"),
            _rule("exact", "exact", "pkg-a"),
        ]
    )
    assert [r.name for r in registry.rules] == ["exact", "prefix", "catch"]
    assert registry.match("pkg-a").name == "exact"  # type: ignore[union-attr]
    assert registry.match("pkg-b").name == "prefix"  # type: ignore[union-attr]


def test_first_registered_rule_wins_a_tie() -> None:
    registry = MockRegistry()
    registry.register(_rule("first", "prefix", "lib-"))
    registry.register(_rule("second", "prefix", "lib-"))
    resolution = registry.resolve("lib-x")
    assert resolution is not None
    assert resolution.rule.name == "first"
    assert resolution.source == "// first:lib-x"


def test_priority_reorders_within_a_class() -> None:
    registry = MockRegistry(
        [_rule("low", "prefix", "lib-"), _rule("high", "prefix", "lib-", priority=5)]
    )
    assert registry.match("lib-x").name == "high"  # type: ignore[union-attr]


def test_rule_without_patterns_is_rejected() -> None:
    with pytest.raises(ValueError):
        MockRegistry().register(_rule("empty", "prefix"))


def test_sdk_stub_names_the_package() -> None:
    resolution = default_registry().resolve("@wix/wix-data-items-sdk")
    assert resolution is not None
    assert resolution.rule.name == "wix-sdk"
    assert "@wix/wix-data-items-sdk" in resolution.source


def test_global_shim_reads_window_global() -> None:
    resolution = default_registry().resolve("react")
    assert resolution is not None
    assert "React" in resolution.source
