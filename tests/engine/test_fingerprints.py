from __future__ import annotations

from feedwatch.engine import ComparisonRegistry, FingerprintStore


def test_observe_is_idempotent(fingerprints: FingerprintStore) -> None:
    assert not fingerprints.has_any_observation("feed")

    fingerprints.observe("feed", "id", "a1")
    fingerprints.observe("feed", "id", "a1")

    assert fingerprints.has_any_observation("feed")
    assert fingerprints.is_observed("feed", "id", "a1")
    assert fingerprints.count("feed") == 1


def test_observations_are_scoped_per_feed(fingerprints: FingerprintStore) -> None:
    fingerprints.observe("alpha", "id", "a1")
    assert not fingerprints.is_observed("beta", "id", "a1")
    assert not fingerprints.has_any_observation("beta")


def test_observed_values_returns_known_subset(fingerprints: FingerprintStore) -> None:
    for value in ("foo", "bar"):
        fingerprints.observe("feed", "title", value)
    fingerprints.observe("feed", "id", "baz")

    found = fingerprints.observed_values("feed", "title", ["foo", "baz", "qux", "foo"])
    assert found == {"foo"}
    assert fingerprints.observed_values("feed", "title", []) == set()


def test_observed_values_handles_large_candidate_lists(fingerprints: FingerprintStore) -> None:
    fingerprints.observe("feed", "id", "value-1200")
    candidates = [f"value-{index}" for index in range(1500)]
    assert fingerprints.observed_values("feed", "id", candidates) == {"value-1200"}


def test_count_by_field(fingerprints: FingerprintStore) -> None:
    fingerprints.observe("feed", "id", "a1")
    fingerprints.observe("feed", "title", "foo")
    fingerprints.observe("feed", "title", "bar")
    assert fingerprints.count("feed", "title") == 2
    assert fingerprints.count("feed", "id") == 1
    assert fingerprints.count("feed") == 3


def test_registry_registers_once(registry: ComparisonRegistry) -> None:
    registry.register_if_absent("feed", "title")
    registry.register_if_absent("feed", "title")
    registry.register_if_absent("feed", "description")
    assert registry.list_active_fields("feed") == {"title", "description"}
    assert registry.list_active_fields("other") == set()


def test_forget_feed_removes_observations_and_registrations(
    fingerprints: FingerprintStore, registry: ComparisonRegistry
) -> None:
    fingerprints.observe("feed", "id", "a1")
    fingerprints.observe("feed", "title", "foo")
    fingerprints.observe("other", "id", "a1")
    registry.register_if_absent("feed", "title")

    assert fingerprints.forget_feed("feed") == 2
    assert not fingerprints.has_any_observation("feed")
    assert registry.list_active_fields("feed") == set()
    assert fingerprints.has_any_observation("other")
