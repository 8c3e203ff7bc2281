"""Storage layer abstractions and adapters."""

from .base import (BuildRepository, FamilyRepository, ProjectRepository,
                   VersionRepository)
from .blob_store import (BlobNotFoundError, BlobStoreError,
                         BlobStoreUnavailableError, DownloadLink,
                         DownloadUrlProvider, LocalDownloadUrlProvider,
                         S3DownloadUrlProvider, TemplateDownloadUrlProvider,
                         build_url_provider_from_env, render_storage_key)
from .errors import RepositoryError, SnapshotError, ValidationError
from .memory import (InMemoryBuildRepository, InMemoryCatalog,
                     InMemoryFamilyRepository, InMemoryProjectRepository,
                     InMemoryVersionRepository)
from .snapshot import catalog_from_payload, load_snapshot

__all__ = [
    "BlobNotFoundError",
    "BlobStoreError",
    "BlobStoreUnavailableError",
    "BuildRepository",
    "DownloadLink",
    "DownloadUrlProvider",
    "FamilyRepository",
    "InMemoryBuildRepository",
    "InMemoryCatalog",
    "InMemoryFamilyRepository",
    "InMemoryProjectRepository",
    "InMemoryVersionRepository",
    "LocalDownloadUrlProvider",
    "ProjectRepository",
    "RepositoryError",
    "S3DownloadUrlProvider",
    "SnapshotError",
    "TemplateDownloadUrlProvider",
    "ValidationError",
    "VersionRepository",
    "build_url_provider_from_env",
    "catalog_from_payload",
    "load_snapshot",
    "render_storage_key",
]
