"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Download URL resolution and the short-lived URL cache.
"""

from __future__ import annotations

import threading
from typing import List, Tuple

import pytest

from fill_catalog.errors import ArtifactUnavailable, CollaboratorFailure
from fill_catalog.models import Build, Project, Version
from fill_catalog.services import ArtifactResolver, UrlCache
from fill_catalog.storage import DownloadLink, InMemoryCatalog


class _ManualClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def coordinates(catalog: InMemoryCatalog) -> Tuple[Project, Version, Build]:
    project = catalog.projects.find_by_name("test-project")
    version = catalog.versions.find_by_name(project, "1.0.0")
    build = catalog.builds.find_by_number(version, 7)
    return project, version, build


def _resolve(resolver: ArtifactResolver, coordinates) -> DownloadLink:
    project, version, build = coordinates
    return resolver.resolve(
        project, version, build, "server", build.downloads["server"]
    )


def test_resolve_without_cache_always_calls_provider(
    fake_provider, coordinates
) -> None:
    resolver = ArtifactResolver(fake_provider, expires_in=120)

    first = _resolve(resolver, coordinates)
    _resolve(resolver, coordinates)

    assert len(fake_provider.calls) == 2
    assert first.storage_key == "test-project/1.0.0/7/server.jar"


def test_missing_object_raises_artifact_unavailable(
    fake_provider, coordinates
) -> None:
    """
    test_missing_object_raises_artifact_unavailable: Function description.
    :param fake_provider:
    :param coordinates:
    :returns:
    """

    fake_provider.missing.add("test-project/1.0.0/7/server.jar")
    resolver = ArtifactResolver(fake_provider)

    with pytest.raises(ArtifactUnavailable) as excinfo:
        _resolve(resolver, coordinates)

    assert excinfo.value.storage_key == "test-project/1.0.0/7/server.jar"


def test_provider_outage_raises_collaborator_failure(
    fake_provider, coordinates
) -> None:
    fake_provider.broken.add("test-project/1.0.0/7/server.jar")
    resolver = ArtifactResolver(fake_provider)

    with pytest.raises(CollaboratorFailure):
        _resolve(resolver, coordinates)


def test_cached_link_is_reused_until_ttl(fake_provider, coordinates) -> None:
    clock = _ManualClock()
    resolver = ArtifactResolver(
        fake_provider, cache=UrlCache(60, time_fn=clock)
    )

    first = _resolve(resolver, coordinates)
    clock.now += 59
    second = _resolve(resolver, coordinates)
    clock.now += 2
    third = _resolve(resolver, coordinates)

    assert first.url == second.url
    assert third is not first
    assert len(fake_provider.calls) == 2


def test_short_lived_link_expires_before_ttl(
    fake_provider, coordinates
) -> None:
    """
    test_short_lived_link_expires_before_ttl: A URL valid for 10s is kept
    for at most 10s minus the safety margin.
    :param fake_provider:
    :param coordinates:
    :returns:
    """

    clock = _ManualClock()
    fake_provider.expires_in = 10
    cache = UrlCache(60, safety_margin=5.0, time_fn=clock)
    resolver = ArtifactResolver(fake_provider, cache=cache)

    _resolve(resolver, coordinates)
    clock.now += 4
    _resolve(resolver, coordinates)
    clock.now += 2
    _resolve(resolver, coordinates)

    assert len(fake_provider.calls) == 2


def test_link_within_safety_margin_is_not_cached(
    fake_provider, coordinates
) -> None:
    fake_provider.expires_in = 3
    cache = UrlCache(60, safety_margin=5.0, time_fn=_ManualClock())
    resolver = ArtifactResolver(fake_provider, cache=cache)

    _resolve(resolver, coordinates)
    _resolve(resolver, coordinates)

    assert len(fake_provider.calls) == 2
    assert len(cache) == 0


def test_generation_change_invalidates_cached_links(
    fake_provider, coordinates
) -> None:
    resolver = ArtifactResolver(
        fake_provider, cache=UrlCache(60, time_fn=_ManualClock())
    )

    before = _resolve(resolver, coordinates)
    fake_provider.generation += 1
    after = _resolve(resolver, coordinates)

    assert before.url.endswith("sig=0")
    assert after.url.endswith("sig=1")


def test_failures_are_not_cached(fake_provider, coordinates) -> None:
    """
    test_failures_are_not_cached: Function description.
    :param fake_provider:
    :param coordinates:
    :returns:
    """

    key = "test-project/1.0.0/7/server.jar"
    cache = UrlCache(60, time_fn=_ManualClock())
    resolver = ArtifactResolver(fake_provider, cache=cache)
    fake_provider.missing.add(key)

    with pytest.raises(ArtifactUnavailable):
        _resolve(resolver, coordinates)
    fake_provider.missing.discard(key)
    link = _resolve(resolver, coordinates)

    assert link.storage_key == key
    assert len(cache) == 1


def test_cache_is_bounded() -> None:
    cache = UrlCache(60, max_entries=2, time_fn=_ManualClock())
    calls: List[str] = []

    def _link(key: str):
        def _resolve_key() -> DownloadLink:
            calls.append(key)
            return DownloadLink(storage_key=key, url=key, expires_in=None)

        return _resolve_key

    for key in ("a", "b", "c"):
        cache.get_or_resolve(key, _link(key))
    cache.get_or_resolve("c", _link("c"))
    cache.get_or_resolve("a", _link("a"))

    assert len(cache) == 2
    assert calls == ["a", "b", "c", "a"]


def test_invalidate_drops_entries() -> None:
    cache = UrlCache(60, time_fn=_ManualClock())
    cache.get_or_resolve(
        "k", lambda: DownloadLink(storage_key="k", url="u", expires_in=None)
    )

    cache.invalidate()

    assert len(cache) == 0


def test_concurrent_misses_share_one_resolution() -> None:
    """
    test_concurrent_misses_share_one_resolution: Two readers, one fetch.
    :param:
    :returns:
    """

    cache = UrlCache(60)
    entered = threading.Event()
    release = threading.Event()
    calls: List[int] = []
    results: List[DownloadLink] = []

    def _slow() -> DownloadLink:
        calls.append(1)
        entered.set()
        release.wait(timeout=5)
        return DownloadLink(storage_key="k", url="u", expires_in=None)

    def _reader() -> None:
        results.append(cache.get_or_resolve("k", _slow))

    first = threading.Thread(target=_reader)
    first.start()
    assert entered.wait(timeout=5)
    second = threading.Thread(target=_reader)
    second.start()
    release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert len(calls) == 1
    assert len(results) == 2
    assert results[0] is results[1]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ttl": 0},
        {"ttl": 5, "max_entries": 0},
        {"ttl": 5, "safety_margin": -1},
    ],
)
def test_cache_rejects_bad_settings(kwargs) -> None:
    with pytest.raises(ValueError):
        UrlCache(**kwargs)


def test_resolver_rejects_non_positive_expiry(fake_provider) -> None:
    with pytest.raises(ValueError):
        ArtifactResolver(fake_provider, expires_in=0)


def test_cached_link_reports_remaining_lifetime(
    fake_provider, coordinates
) -> None:
    """
    test_cached_link_reports_remaining_lifetime: expires_in counts down.
    :param fake_provider:
    :param coordinates:
    :returns:
    """

    clock = _ManualClock()
    resolver = ArtifactResolver(
        fake_provider, cache=UrlCache(600, time_fn=clock)
    )

    fresh = _resolve(resolver, coordinates)
    clock.now += 500
    cached = _resolve(resolver, coordinates)

    assert fresh.expires_in == 900
    assert cached.expires_in == 400
    assert cached.url == fresh.url
    assert len(fake_provider.calls) == 1


def test_unexpiring_link_is_returned_as_is(
    fake_provider, coordinates
) -> None:
    clock = _ManualClock()
    fake_provider.expires_in = None
    resolver = ArtifactResolver(
        fake_provider, cache=UrlCache(60, time_fn=clock)
    )

    fresh = _resolve(resolver, coordinates)
    clock.now += 30

    assert _resolve(resolver, coordinates) is fresh


def test_generation_change_drops_stale_entries(
    fake_provider, coordinates
) -> None:
    cache = UrlCache(60, time_fn=_ManualClock())
    resolver = ArtifactResolver(fake_provider, cache=cache)
    project, version, build = coordinates
    _resolve(resolver, coordinates)
    resolver.resolve(
        project, version, build, "extra", build.downloads["server"]
    )
    assert len(cache) == 2

    fake_provider.generation += 1
    _resolve(resolver, coordinates)

    assert len(cache) == 1
