"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Shared fixtures: a seeded in-memory catalog, a fake storage provider and a
fixed clock.
"""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from fill_catalog.models import (Build, BuildChannel, Checksums, Commit,
                                 Download, Family, JavaRequirement, Project,
                                 StoredSupport, SupportStatus, Version)
from fill_catalog.services import (ArtifactResolver, CatalogService,
                                   SupportResolver, build_catalog_service)
from fill_catalog.storage import (BlobNotFoundError,
                                  BlobStoreUnavailableError, DownloadLink,
                                  InMemoryCatalog)

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def sha1_for(index: int) -> str:
    return f"{index:040x}"


def sha256_for(index: int) -> str:
    return f"{index:064x}"


class FakeUrlProvider:
    """
    FakeUrlProvider: Storage collaborator double recording every call.
    """

    def __init__(self) -> None:
        self.generation = 0
        self.calls: List[str] = []
        self.missing: Set[str] = set()
        self.broken: Set[str] = set()
        self.expires_in: Optional[int] = 900
        self._lock = threading.Lock()

    def generate_download_url(
        self, storage_key: str, *, expires_in: int = 900
    ) -> DownloadLink:
        """
        generate_download_url: Sign a fake URL unless the key is flagged.
        :param storage_key:
        :param expires_in:
        :returns:
        """

        with self._lock:
            self.calls.append(storage_key)
        if storage_key in self.missing:
            raise BlobNotFoundError(f"{storage_key} does not exist")
        if storage_key in self.broken:
            raise BlobStoreUnavailableError("storage timed out")
        return DownloadLink(
            storage_key=storage_key,
            url=f"https://cdn.example/{storage_key}?sig={self.generation}",
            expires_in=self.expires_in,
        )


def make_download(
    name: str, index: int, key: Optional[str] = None
) -> Download:
    return Download(
        name=name,
        checksums=Checksums(sha256=sha256_for(index)),
        size=1024 + index,
        storage_key=key or name,
    )


def make_build(
    version: Version,
    number: int,
    *,
    channel: BuildChannel = BuildChannel.STABLE,
    created_at: Optional[datetime] = None,
    downloads: Optional[Dict[str, Download]] = None,
) -> Build:
    created = created_at or (EPOCH + timedelta(hours=number))
    return Build(
        id=f"{version.id}-b{number}",
        version_id=version.id,
        number=number,
        created_at=created,
        channel=channel,
        commits=(
            Commit(
                sha=sha1_for(number),
                time=created - timedelta(minutes=5),
                message=f"Build {number} changes\n\nDetails for {number}",
            ),
        ),
        downloads=downloads
        if downloads is not None
        else {
            "server": make_download(
                f"app-{version.name}-{number}.jar",
                number,
                key=f"test-project/{version.name}/{number}/server.jar",
            ),
        },
    )


@pytest.fixture()
def fake_provider() -> FakeUrlProvider:
    """Fresh storage collaborator double."""
    return FakeUrlProvider()


@pytest.fixture()
def clock() -> SupportResolver:
    """Support resolver pinned to FIXED_NOW."""
    return SupportResolver(clock=lambda: FIXED_NOW)


@pytest.fixture()
def catalog() -> InMemoryCatalog:
    """
    catalog: Seed one project with two families and three versions.

    Version 1.0.0 has twelve builds alternating STABLE/EXPERIMENTAL.
    :returns:
    """

    store = InMemoryCatalog()
    project = store.add_project(
        Project(id="p-1", name="test-project", display_name="Test Project")
    )
    store.add_project(Project(id="p-0", name="other-project"))
    legacy = store.add_family(
        Family(
            id="fam-0",
            project_id=project.id,
            name="0.9",
            created_at=EPOCH,
            java=JavaRequirement(minimum=11),
        )
    )
    current = store.add_family(
        Family(
            id="fam-1",
            project_id=project.id,
            name="1.0",
            created_at=EPOCH + timedelta(days=30),
            java=JavaRequirement(
                minimum=17, recommended_flags=("-Xmx2G", "-XX:+UseG1GC")
            ),
        )
    )
    old = store.add_version(
        Version(
            id="v-090",
            project_id=project.id,
            family_id=legacy.id,
            name="0.9.0",
            created_at=EPOCH + timedelta(days=1),
            updated_at=EPOCH + timedelta(days=1),
            support=StoredSupport(
                status=SupportStatus.SUPPORTED, end=date(2025, 1, 1)
            ),
        )
    )
    supported = store.add_version(
        Version(
            id="v-100",
            project_id=project.id,
            family_id=current.id,
            name="1.0.0",
            created_at=EPOCH + timedelta(days=31),
            updated_at=EPOCH + timedelta(days=40),
            support=StoredSupport(status=SupportStatus.SUPPORTED),
        )
    )
    store.add_version(
        Version(
            id="v-101",
            project_id=project.id,
            family_id=current.id,
            name="1.0.1",
            created_at=EPOCH + timedelta(days=45),
            updated_at=EPOCH + timedelta(days=45),
            support=StoredSupport(status=SupportStatus.UNSUPPORTED),
            java=JavaRequirement(minimum=21),
        )
    )
    for number in range(1, 13):
        channel = (
            BuildChannel.STABLE if number % 2 == 0
            else BuildChannel.EXPERIMENTAL
        )
        store.add_build(make_build(supported, number, channel=channel))
    store.add_build(make_build(old, 1))
    return store


@pytest.fixture()
def service(
    catalog: InMemoryCatalog,
    fake_provider: FakeUrlProvider,
    clock: SupportResolver,
) -> CatalogService:
    """Catalog service over the seeded catalog without a URL cache."""
    return build_catalog_service(
        catalog, ArtifactResolver(fake_provider), support=clock
    )


@pytest.fixture()
def build_factory():
    """Expose make_build to test modules without importing conftest."""
    return make_build


@pytest.fixture()
def download_factory():
    return make_download
