"""Domain model package exports."""

from .entities import (Build, BuildChannel, Checksums, Commit,
                       CommitOrderError, Download, Family, JavaRequirement,
                       Project, StoredSupport, Support, SupportStatus, Version,
                       build_order_key, check_commit_order,
                       created_at_desc_key, project_order_key)
from .filters import BuildFilter, VersionFilter, validate_limit
from .views import (ArtifactUnavailableMarker, BehindBy, BuildView,
                    CommitView, Connection, DownloadView, Edge, FamilyView,
                    PageInfo, ProjectView, VersionCheck, VersionCheckStatus,
                    VersionView)

__all__ = [
    "ArtifactUnavailableMarker",
    "BehindBy",
    "Build",
    "BuildChannel",
    "BuildFilter",
    "BuildView",
    "Checksums",
    "Commit",
    "CommitOrderError",
    "CommitView",
    "Connection",
    "Download",
    "DownloadView",
    "Edge",
    "Family",
    "FamilyView",
    "JavaRequirement",
    "PageInfo",
    "Project",
    "ProjectView",
    "StoredSupport",
    "Support",
    "SupportStatus",
    "Version",
    "VersionCheck",
    "VersionCheckStatus",
    "VersionFilter",
    "VersionView",
    "build_order_key",
    "check_commit_order",
    "created_at_desc_key",
    "project_order_key",
    "validate_limit",
]
