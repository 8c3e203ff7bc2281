"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Query facade composing lookups, listings, support resolution and download
URL resolution into plain view objects.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from fill_catalog.errors import ArtifactUnavailable, InvalidFilter
from fill_catalog.models import (ArtifactUnavailableMarker, BehindBy, Build,
                                 BuildChannel, BuildFilter, BuildView,
                                 CommitView, Connection, DownloadView, Edge,
                                 Family, FamilyView, Project, ProjectView,
                                 Version, VersionCheck, VersionCheckStatus,
                                 VersionFilter, VersionView, build_order_key,
                                 created_at_desc_key, project_order_key,
                                 validate_limit)
from fill_catalog.storage.base import (BuildRepository, FamilyRepository,
                                       ProjectRepository, VersionRepository)
from fill_catalog.utils.pagination import (DATETIME_CODEC, INT_CODEC,
                                           CursorPaginator, OrderDirection)

from .artifacts import ArtifactResolver
from .guard import collaborator_call
from .listing import ListingEngine
from .support import SupportResolver

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

VERSION_PAGINATOR: CursorPaginator[Version, datetime] = CursorPaginator(
    "versions", lambda version: version.created_at, DATETIME_CODEC
)
BUILD_PAGINATOR: CursorPaginator[Build, int] = CursorPaginator(
    "builds", lambda build: build.number, INT_CODEC
)


def _require_name(value: object, label: str) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidFilter(f"{label} must be a non-empty string")
    return value


def _require_filter(value: object, expected: type, label: str) -> None:
    if value is not None and not isinstance(value, expected):
        raise InvalidFilter(
            f"{label} must be a {expected.__name__}, got "
            f"{type(value).__name__}"
        )


def _distance(items: Sequence[T], matches: Callable[[T], bool]) -> int:
    """Position of the first match in a newest-first list."""
    for index, item in enumerate(items):
        if matches(item):
            return index
    return 0


def project_view(project: Project) -> ProjectView:
    return ProjectView(
        id=project.id,
        name=project.name,
        display_name=project.display_name or project.name,
    )


def family_view(family: Family) -> FamilyView:
    return FamilyView(
        id=family.id,
        name=family.name,
        created_at=family.created_at,
        java=family.java,
    )


def commit_views(build: Build) -> tuple[CommitView, ...]:
    return tuple(
        CommitView(
            sha=commit.sha,
            time=commit.time,
            summary=commit.summary,
            message=commit.message,
        )
        for commit in build.commits
    )


class CatalogService:
    """
    Read-only entry point for transport layers.

    Lookups that find nothing return ``None``; malformed input raises
    InvalidFilter; unexpected repository or storage faults raise
    CollaboratorFailure. A download whose object is missing is reported on
    that download only, as an ArtifactUnavailableMarker.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        families: FamilyRepository,
        versions: VersionRepository,
        builds: BuildRepository,
        artifacts: ArtifactResolver,
        *,
        support: Optional[SupportResolver] = None,
    ) -> None:
        self._projects = projects
        self._families = families
        self._versions = versions
        self._builds = builds
        self._artifacts = artifacts
        self._support = support or SupportResolver()
        self._listing = ListingEngine(
            projects, families, versions, builds, self._support
        )

    # Projects --------------------------------------------------------------

    def list_projects(self) -> List[ProjectView]:
        with collaborator_call("ProjectRepository", "find_all"):
            projects = self._projects.find_all()
        return [
            project_view(project)
            for project in sorted(projects, key=project_order_key)
        ]

    def get_project(self, name: str) -> Optional[ProjectView]:
        project = self._listing.find_project(_require_name(name, "project"))
        return project_view(project) if project is not None else None

    # Families --------------------------------------------------------------

    def list_families(self, project: str) -> Optional[List[FamilyView]]:
        families = self._listing.list_families(
            _require_name(project, "project")
        )
        if families is None:
            return None
        return [family_view(family) for family in families]

    def get_family(self, project: str, name: str) -> Optional[FamilyView]:
        parent = self._listing.find_project(_require_name(project, "project"))
        if parent is None:
            return None
        with collaborator_call("FamilyRepository", "find_by_name"):
            family = self._families.find_by_name(
                parent, _require_name(name, "family")
            )
        return family_view(family) if family is not None else None

    # Versions --------------------------------------------------------------

    def list_versions(
        self,
        project: str,
        filter_by: Optional[VersionFilter] = None,
        limit: Optional[int] = None,
    ) -> Optional[List[VersionView]]:
        """
        list_versions: Versions of a project, newest first.
        :param project: project name
        :param filter_by: optional family/support predicates (AND semantics)
        :param limit: optional non-negative bound applied after ordering
        :returns: None when the project does not exist
        """

        _require_name(project, "project")
        _require_filter(filter_by, VersionFilter, "filter_by")
        limit = validate_limit(limit)
        at = self._support.now()
        listing = self._listing.list_versions(project, filter_by, limit, at=at)
        if listing is None:
            return None
        families: Dict[str, Optional[Family]] = {}
        return [
            self._version_view(version, at, families)
            for version in listing.versions
        ]

    def get_version(self, project: str, name: str) -> Optional[VersionView]:
        parent = self._listing.find_project(_require_name(project, "project"))
        if parent is None:
            return None
        version = self._listing.find_version(
            parent, _require_name(name, "version")
        )
        if version is None:
            return None
        return self._version_view(version, self._support.now(), {})

    def page_versions(
        self,
        project: str,
        filter_by: Optional[VersionFilter] = None,
        *,
        first: Optional[int] = None,
        last: Optional[int] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
        direction: Optional[OrderDirection] = None,
    ) -> Optional[Connection]:
        """Cursor-paginated versions; nodes are VersionView objects."""
        _require_name(project, "project")
        _require_filter(filter_by, VersionFilter, "filter_by")
        at = self._support.now()
        listing = self._listing.list_versions(project, filter_by, at=at)
        if listing is None:
            return None
        page = VERSION_PAGINATOR.paginate(
            listing.versions,
            direction=direction,
            after=after,
            before=before,
            first=first,
            last=last,
        )
        families: Dict[str, Optional[Family]] = {}
        return Connection(
            edges=tuple(
                Edge(
                    node=self._version_view(edge.node, at, families),
                    cursor=edge.cursor,
                )
                for edge in page.edges
            ),
            page_info=page.page_info,
            total_count=page.total_count,
        )

    def _version_view(
        self,
        version: Version,
        at: datetime,
        families: Dict[str, Optional[Family]],
    ) -> VersionView:
        if version.family_id not in families:
            with collaborator_call("FamilyRepository", "find_by_id"):
                families[version.family_id] = self._families.find_by_id(
                    version.family_id
                )
        family = families[version.family_id]
        if family is None:
            _LOGGER.warning(
                "Version %s references unknown family %s",
                version.id,
                version.family_id,
            )
        java = version.java
        if java is None and family is not None:
            java = family.java
        return VersionView(
            id=version.id,
            name=version.name,
            family=family_view(family) if family is not None else None,
            support=self._support.resolve(version, at=at),
            java=java,
            created_at=version.created_at,
            updated_at=version.updated_at,
        )

    # Builds ----------------------------------------------------------------

    def list_builds(
        self,
        project: str,
        version: str,
        filter_by: Optional[BuildFilter] = None,
        limit: Optional[int] = None,
    ) -> Optional[List[BuildView]]:
        """
        list_builds: Builds of a version with download URLs resolved.
        :param project: project name
        :param version: version name
        :param filter_by: optional channel predicate
        :param limit: optional non-negative bound applied after ordering
        :returns: None when the project or version does not exist
        """

        _require_name(project, "project")
        _require_name(version, "version")
        _require_filter(filter_by, BuildFilter, "filter_by")
        limit = validate_limit(limit)
        listing = self._listing.list_builds(project, version, filter_by, limit)
        if listing is None:
            return None
        return [
            self._build_view(listing.project, listing.version, build)
            for build in listing.builds
        ]

    def get_build(
        self, project: str, version: str, number: int
    ) -> Optional[BuildView]:
        if isinstance(number, bool) or not isinstance(number, int):
            raise InvalidFilter(f"build number must be an integer: {number!r}")
        parent = self._listing.find_project(_require_name(project, "project"))
        if parent is None:
            return None
        found = self._listing.find_version(
            parent, _require_name(version, "version")
        )
        if found is None:
            return None
        with collaborator_call("BuildRepository", "find_by_number"):
            build = self._builds.find_by_number(found, number)
        if build is None:
            return None
        return self._build_view(parent, found, build)

    def latest_build(
        self,
        project: str,
        version: str,
        channel: Optional[BuildChannel] = None,
    ) -> Optional[BuildView]:
        """Most recently created build, optionally restricted to a channel."""
        builds = self.list_builds(
            project, version, BuildFilter(channel=channel), limit=1
        )
        if not builds:
            return None
        return builds[0]

    def get_download(
        self, project: str, version: str, number: int, role: str
    ) -> Optional[DownloadView]:
        build = self.get_build(project, version, number)
        if build is None:
            return None
        return build.download(role)

    def page_builds(
        self,
        project: str,
        version: str,
        filter_by: Optional[BuildFilter] = None,
        *,
        first: Optional[int] = None,
        last: Optional[int] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
        direction: Optional[OrderDirection] = None,
    ) -> Optional[Connection]:
        """Cursor-paginated builds keyed by build number."""
        _require_name(project, "project")
        _require_name(version, "version")
        _require_filter(filter_by, BuildFilter, "filter_by")
        listing = self._listing.list_builds(project, version, filter_by)
        if listing is None:
            return None
        page = BUILD_PAGINATOR.paginate(
            listing.builds,
            direction=direction,
            after=after,
            before=before,
            first=first,
            last=last,
        )
        return Connection(
            edges=tuple(
                Edge(
                    node=self._build_view(
                        listing.project, listing.version, edge.node
                    ),
                    cursor=edge.cursor,
                )
                for edge in page.edges
            ),
            page_info=page.page_info,
            total_count=page.total_count,
        )

    def _build_view(
        self, project: Project, version: Version, build: Build
    ) -> BuildView:
        downloads: List[DownloadView] = []
        for role in sorted(build.downloads):
            download = build.downloads[role]
            try:
                link = self._artifacts.resolve(
                    project, version, build, role, download
                )
            except ArtifactUnavailable as exc:
                downloads.append(
                    DownloadView(
                        role=role,
                        name=download.name,
                        checksums=download.checksums,
                        size=download.size,
                        error=ArtifactUnavailableMarker(
                            storage_key=exc.storage_key, reason=exc.reason
                        ),
                    )
                )
                continue
            downloads.append(
                DownloadView(
                    role=role,
                    name=download.name,
                    checksums=download.checksums,
                    size=download.size,
                    url=link.url,
                    expires_in=link.expires_in,
                )
            )
        return BuildView(
            id=build.id,
            number=build.number,
            channel=build.channel,
            created_at=build.created_at,
            commits=commit_views(build),
            downloads=tuple(downloads),
        )

    # Version check ---------------------------------------------------------

    def check_version(
        self, project: str, version: str, build_number: int
    ) -> Optional[VersionCheck]:
        """
        Report how far a running build is behind the newest releases.

        Distances count newer families in the project, newer versions in the
        same family within this project and newer builds of the same version.
        """
        if isinstance(build_number, bool) or not isinstance(build_number, int):
            raise InvalidFilter(
                f"build number must be an integer: {build_number!r}"
            )
        parent = self._listing.find_project(_require_name(project, "project"))
        if parent is None:
            return None
        current = self._listing.find_version(
            parent, _require_name(version, "version")
        )
        if current is None:
            return None
        with collaborator_call("BuildRepository", "find_by_number"):
            build = self._builds.find_by_number(current, build_number)
        if build is None:
            return None

        with collaborator_call("FamilyRepository", "find_all_by_parent"):
            families = sorted(
                self._families.find_all_by_parent(parent),
                key=created_at_desc_key,
            )
        with collaborator_call("VersionRepository", "find_all_by_parent"):
            siblings = sorted(
                self._versions.find_all_by_parent(
                    parent,
                    lambda item: item.family_id == current.family_id,
                ),
                key=created_at_desc_key,
            )
        with collaborator_call("BuildRepository", "find_all_by_parent"):
            builds = sorted(
                self._builds.find_all_by_parent(current), key=build_order_key
            )

        behind = BehindBy(
            families=_distance(
                families, lambda item: item.id == current.family_id
            ),
            versions=_distance(siblings, lambda item: item.id == current.id),
            builds=_distance(builds, lambda item: item.id == build.id),
        )
        if behind.families or behind.versions or behind.builds:
            return VersionCheck(
                status=VersionCheckStatus.OUT_OF_DATE, behind_by=behind
            )
        return VersionCheck(status=VersionCheckStatus.UP_TO_DATE)
