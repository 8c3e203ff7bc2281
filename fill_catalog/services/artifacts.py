"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Resolve build downloads into fetchable URLs at read time.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass, replace
from typing import Callable, Hashable, Optional

from fill_catalog.config import DEFAULT_URL_EXPIRES_IN
from fill_catalog.errors import ArtifactUnavailable
from fill_catalog.models import Build, Download, Project, Version
from fill_catalog.storage.blob_store import (BlobNotFoundError, DownloadLink,
                                             DownloadUrlProvider)

from .guard import collaborator_call

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CacheEntry:
    link: DownloadLink
    issued_at: float
    expires_at: float

    def remaining(self, now: float) -> DownloadLink:
        """Copy of the link whose ``expires_in`` counts down from issue."""
        if self.link.expires_in is None:
            return self.link
        left = int(self.link.expires_in - (now - self.issued_at))
        return replace(self.link, expires_in=max(left, 0))


class UrlCache:
    """
    Short-lived, bounded cache of resolved download links.

    Entries expire ``safety_margin`` seconds before the link itself does and
    never live longer than ``ttl``. Concurrent lookups of a missing key share
    one resolution; failures are handed to every waiter and never stored.
    """

    def __init__(
        self,
        ttl: float,
        *,
        max_entries: int = 1024,
        safety_margin: float = 5.0,
        time_fn: Optional[Callable[[], float]] = None,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive.")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive.")
        if safety_margin < 0:
            raise ValueError("safety_margin cannot be negative.")
        self._ttl = float(ttl)
        self._max_entries = max_entries
        self._safety_margin = float(safety_margin)
        self._time_fn = time_fn or time.monotonic
        self._lock = threading.Lock()
        self._entries: "OrderedDict[Hashable, _CacheEntry]" = OrderedDict()
        self._inflight: dict[Hashable, Future] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_or_resolve(
        self, key: Hashable, resolve: Callable[[], DownloadLink]
    ) -> DownloadLink:
        with self._lock:
            now = self._time_fn()
            entry = self._entries.get(key)
            if entry is not None:
                if entry.expires_at > now:
                    self._entries.move_to_end(key)
                    return entry.remaining(now)
                del self._entries[key]
            pending = self._inflight.get(key)
            if pending is None:
                future: Future = Future()
                self._inflight[key] = future
        if pending is not None:
            # Another caller is already resolving this key.
            return pending.result()

        started = self._time_fn()
        try:
            link = resolve()
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._inflight.pop(key, None)
            lifetime = self._lifetime(link)
            if lifetime > 0:
                self._entries[key] = _CacheEntry(
                    link=link,
                    issued_at=started,
                    expires_at=started + lifetime,
                )
                self._entries.move_to_end(key)
                while len(self._entries) > self._max_entries:
                    self._entries.popitem(last=False)
        future.set_result(link)
        return link

    def _lifetime(self, link: DownloadLink) -> float:
        if link.expires_in is None:
            return self._ttl
        return min(self._ttl, link.expires_in - self._safety_margin)

    def invalidate(self) -> None:
        """Drop every cached link."""
        with self._lock:
            self._entries.clear()


class ArtifactResolver:
    """Turn a download's storage key into a URL through a storage provider."""

    def __init__(
        self,
        provider: DownloadUrlProvider,
        *,
        expires_in: int = DEFAULT_URL_EXPIRES_IN,
        cache: Optional[UrlCache] = None,
    ) -> None:
        if expires_in <= 0:
            raise ValueError("expires_in must be positive.")
        self._provider = provider
        self._expires_in = expires_in
        self._cache = cache
        self._generation = getattr(provider, "generation", 0)

    def resolve(
        self,
        project: Project,
        version: Version,
        build: Build,
        role: str,
        download: Download,
    ) -> DownloadLink:
        """
        Resolve one download.

        Raises ArtifactUnavailable when the provider reports the object
        missing and CollaboratorFailure for any other provider fault.
        """
        if self._cache is None:
            return self._fetch(download)
        generation = getattr(self._provider, "generation", 0)
        if generation != self._generation:
            # Links signed under the previous generation are no longer valid.
            _LOGGER.info(
                "Storage generation changed %s -> %s; dropping cached URLs",
                self._generation,
                generation,
            )
            self._generation = generation
            self._cache.invalidate()
        key = (project.id, version.id, build.id, role, generation)
        return self._cache.get_or_resolve(key, lambda: self._fetch(download))

    def _fetch(self, download: Download) -> DownloadLink:
        with collaborator_call("DownloadUrlProvider", "generate_download_url"):
            try:
                return self._provider.generate_download_url(
                    download.storage_key, expires_in=self._expires_in
                )
            except BlobNotFoundError as exc:
                _LOGGER.warning(
                    "Download %s unavailable: %s", download.storage_key, exc
                )
                raise ArtifactUnavailable(
                    download.storage_key, str(exc)
                ) from exc
