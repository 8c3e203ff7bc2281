"""Read-only view objects assembled by the catalog service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .entities import BuildChannel, Checksums, JavaRequirement, Support


@dataclass(frozen=True)
class ProjectView:
    id: str
    name: str
    display_name: str


@dataclass(frozen=True)
class FamilyView:
    id: str
    name: str
    created_at: datetime
    java: Optional[JavaRequirement]


@dataclass(frozen=True)
class VersionView:
    """Version with its support status resolved at query time."""

    id: str
    name: str
    family: Optional[FamilyView]
    support: Support
    java: Optional[JavaRequirement]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class CommitView:
    sha: str
    time: datetime
    summary: str
    message: str


@dataclass(frozen=True)
class ArtifactUnavailableMarker:
    """Placed on a download whose URL could not be resolved."""

    storage_key: str
    reason: str


@dataclass(frozen=True)
class DownloadView:
    """A download with either a resolved URL or an unavailability marker."""

    role: str
    name: str
    checksums: Checksums
    size: int
    url: Optional[str] = None
    expires_in: Optional[int] = None
    error: Optional[ArtifactUnavailableMarker] = None

    @property
    def available(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BuildView:
    id: str
    number: int
    channel: BuildChannel
    created_at: datetime
    commits: tuple[CommitView, ...] = ()
    downloads: tuple[DownloadView, ...] = ()

    def download(self, role: str) -> Optional[DownloadView]:
        """Return the download registered under ``role`` if present."""
        for entry in self.downloads:
            if entry.role == role:
                return entry
        return None

    @property
    def unavailable_downloads(self) -> tuple[DownloadView, ...]:
        return tuple(entry for entry in self.downloads if not entry.available)


class VersionCheckStatus(str, Enum):
    UP_TO_DATE = "UP_TO_DATE"
    OUT_OF_DATE = "OUT_OF_DATE"


@dataclass(frozen=True)
class BehindBy:
    """How many newer families, versions and builds exist."""

    families: int
    versions: int
    builds: int


@dataclass(frozen=True)
class VersionCheck:
    status: VersionCheckStatus
    behind_by: Optional[BehindBy] = None


@dataclass(frozen=True)
class PageInfo:
    start_cursor: Optional[str] = None
    end_cursor: Optional[str] = None
    has_previous_page: bool = False
    has_next_page: bool = False


@dataclass(frozen=True)
class Edge:
    node: object
    cursor: str


@dataclass(frozen=True)
class Connection:
    """A page of results with cursors, mirroring relay-style connections."""

    edges: tuple[Edge, ...] = ()
    page_info: PageInfo = field(default_factory=PageInfo)
    total_count: int = 0

    @property
    def nodes(self) -> tuple[object, ...]:
        return tuple(edge.node for edge in self.edges)
