"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Domain entities for the release catalog hierarchy.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

COMMIT_SHA_REGEX = re.compile(r"^[0-9a-f]{40}$")
SHA256_REGEX = re.compile(r"^[0-9a-f]{64}$")


class SupportStatus(str, Enum):
    """Lifecycle state of a version."""

    SUPPORTED = "SUPPORTED"
    DEPRECATED = "DEPRECATED"
    UNSUPPORTED = "UNSUPPORTED"
    EOL = "EOL"


class BuildChannel(str, Enum):
    """Release track a build is published on."""

    ALPHA = "ALPHA"
    BETA = "BETA"
    STABLE = "STABLE"
    RECOMMENDED = "RECOMMENDED"
    EXPERIMENTAL = "EXPERIMENTAL"


def validate_identifier(value: str, *, label: str) -> str:
    """Ensure ids and names are non-empty strings."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} cannot be empty")
    return value


def validate_timestamp(value: datetime, *, label: str) -> datetime:
    """Timestamps must carry a timezone so ordering is unambiguous."""
    if not isinstance(value, datetime):
        raise ValueError(f"{label} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{label} must be timezone-aware")
    return value


@dataclass(frozen=True)
class JavaRequirement:
    """Java runtime requirement shared by a family or overridden by a version."""

    minimum: Optional[int] = None
    recommended_flags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.minimum is not None and self.minimum <= 0:
            raise ValueError("Java minimum version must be positive")
        object.__setattr__(
            self, "recommended_flags", tuple(self.recommended_flags)
        )


@dataclass(frozen=True)
class StoredSupport:
    """Support fields exactly as persisted, before resolution."""

    status: SupportStatus
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if not isinstance(self.status, SupportStatus):
            raise ValueError(
                f"Support status '{self.status}' is not recognized"
            )
        if self.end is not None and isinstance(self.end, datetime):
            # datetime is a date subclass; keep only the calendar day.
            object.__setattr__(self, "end", self.end.date())


@dataclass(frozen=True)
class Support:
    """Resolved support descriptor exposed to callers."""

    status: SupportStatus
    end: Optional[date] = None


@dataclass(frozen=True)
class Project:
    """Top-level product tracked by the catalog."""

    id: str
    name: str
    display_name: str = ""
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_identifier(self.id, label="Project id")
        validate_identifier(self.name, label="Project name")
        if self.created_at is not None:
            validate_timestamp(self.created_at, label="Project createdAt")


@dataclass(frozen=True)
class Family:
    """Release line within a project."""

    id: str
    project_id: str
    name: str
    created_at: datetime
    java: Optional[JavaRequirement] = None

    def __post_init__(self) -> None:
        validate_identifier(self.id, label="Family id")
        validate_identifier(self.project_id, label="Family project id")
        validate_identifier(self.name, label="Family name")
        validate_timestamp(self.created_at, label="Family createdAt")


@dataclass(frozen=True)
class Version:
    """A release of a project.

    ``family_id`` is an informational reference and is not required to name a
    family owned by ``project_id``.
    """

    id: str
    project_id: str
    family_id: str
    name: str
    created_at: datetime
    updated_at: datetime
    support: StoredSupport
    java: Optional[JavaRequirement] = None

    def __post_init__(self) -> None:
        validate_identifier(self.id, label="Version id")
        validate_identifier(self.project_id, label="Version project id")
        validate_identifier(self.family_id, label="Version family id")
        validate_identifier(self.name, label="Version name")
        validate_timestamp(self.created_at, label="Version createdAt")
        validate_timestamp(self.updated_at, label="Version updatedAt")
        if not isinstance(self.support, StoredSupport):
            raise ValueError("Version support must be a StoredSupport")


@dataclass(frozen=True)
class Commit:
    """A source commit included in a build."""

    sha: str
    time: datetime
    message: str

    def __post_init__(self) -> None:
        if not COMMIT_SHA_REGEX.match(self.sha or ""):
            raise ValueError(
                f"Commit sha '{self.sha}' is invalid. Expected pattern "
                f"{COMMIT_SHA_REGEX.pattern}"
            )
        validate_timestamp(self.time, label="Commit time")

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.splitlines()[0] if self.message else ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class CommitOrderError(ValueError):
    """Raised when a commit list is not ordered newest to oldest."""


def check_commit_order(commits: Sequence[Commit]) -> None:
    """Raise CommitOrderError unless ``commits`` run newest to oldest."""
    for index in range(len(commits) - 1):
        current = commits[index]
        following = commits[index + 1]
        if current.time < following.time:
            raise CommitOrderError(
                "Commit order validation failed: index "
                f"{index} ({current.short_sha}) comes before index "
                f"{index + 1} ({following.short_sha}); expected "
                "newest-to-oldest"
            )


@dataclass(frozen=True)
class Checksums:
    """Checksums recorded for a download."""

    sha256: str

    def __post_init__(self) -> None:
        if not SHA256_REGEX.match(self.sha256 or ""):
            raise ValueError(f"sha256 checksum '{self.sha256}' is invalid")


@dataclass(frozen=True)
class Download:
    """One file artifact of a build.

    ``storage_key`` is opaque to the catalog; only a storage collaborator can
    turn it into a URL.
    """

    name: str
    checksums: Checksums
    size: int
    storage_key: str

    def __post_init__(self) -> None:
        validate_identifier(self.name, label="Download name")
        validate_identifier(self.storage_key, label="Download storage key")
        if self.size < 0:
            raise ValueError("Download size cannot be negative")


@dataclass(frozen=True)
class Build:
    """A build of a version; downloads are keyed by artifact role."""

    id: str
    version_id: str
    number: int
    created_at: datetime
    channel: BuildChannel
    commits: tuple[Commit, ...] = ()
    downloads: Mapping[str, Download] = field(default_factory=dict)

    def __post_init__(self) -> None:
        validate_identifier(self.id, label="Build id")
        validate_identifier(self.version_id, label="Build version id")
        validate_timestamp(self.created_at, label="Build createdAt")
        if self.number < 0:
            raise ValueError("Build number cannot be negative")
        if not isinstance(self.channel, BuildChannel):
            raise ValueError(f"Build channel '{self.channel}' is invalid")
        for role in self.downloads:
            validate_identifier(role, label="Download role")
        object.__setattr__(self, "commits", tuple(self.commits))
        object.__setattr__(
            self, "downloads", MappingProxyType(dict(self.downloads))
        )

    def __hash__(self) -> int:
        return hash((self.id, self.version_id, self.number))


# Canonical orderings --------------------------------------------------------

def project_order_key(project: Project) -> tuple[str, str]:
    """Identity ascending."""
    return (project.id, project.name)


def created_at_desc_key(entity: Family | Version) -> tuple[float, str]:
    """Newest first; ties fall back to id so the order is total."""
    return (-entity.created_at.timestamp(), entity.id)


def build_order_key(build: Build) -> tuple[float, int, str]:
    """Most recently created first, then highest build number."""
    return (-build.created_at.timestamp(), -build.number, build.id)
