"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Filter and pagination engine for children of a catalog entity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, TypeVar

from fill_catalog.models import (Build, BuildFilter, Family, Project, Version,
                                 VersionFilter, build_order_key,
                                 created_at_desc_key, validate_limit)
from fill_catalog.storage.base import (BuildRepository, FamilyRepository,
                                       ProjectRepository, VersionRepository)

from .guard import collaborator_call
from .support import SupportResolver

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class VersionListing:
    """Versions of ``project`` after filtering, ordering and limiting."""

    project: Project
    versions: tuple[Version, ...]


@dataclass(frozen=True)
class BuildListing:
    """Builds of ``version`` after filtering, ordering and limiting."""

    project: Project
    version: Version
    builds: tuple[Build, ...]


def all_of(
    predicates: Sequence[Callable[[T], bool]],
) -> Optional[Callable[[T], bool]]:
    """Conjunction of ``predicates``; ``None`` when there is nothing to check."""
    if not predicates:
        return None
    checks = tuple(predicates)

    def _matches(item: T) -> bool:
        return all(check(item) for check in checks)

    return _matches


def _bounded(
    items: Sequence[T], order_key: Callable[[T], object], limit: Optional[int]
) -> tuple[T, ...]:
    # Sorting is stable and idempotent, so this is a no-op for adapters that
    # already honour the canonical order.
    ordered = sorted(items, key=order_key)
    if limit is not None:
        ordered = ordered[:limit]
    return tuple(ordered)


class ListingEngine:
    """Fetch, filter, order and bound the children of a parent entity."""

    def __init__(
        self,
        projects: ProjectRepository,
        families: FamilyRepository,
        versions: VersionRepository,
        builds: BuildRepository,
        support: Optional[SupportResolver] = None,
    ) -> None:
        self._projects = projects
        self._families = families
        self._versions = versions
        self._builds = builds
        self._support = support or SupportResolver()

    def find_project(self, name: str) -> Optional[Project]:
        with collaborator_call("ProjectRepository", "find_by_name"):
            return self._projects.find_by_name(name)

    def find_version(self, project: Project, name: str) -> Optional[Version]:
        with collaborator_call("VersionRepository", "find_by_name"):
            return self._versions.find_by_name(project, name)

    def version_predicates(
        self, spec: Optional[VersionFilter], at: Optional[datetime] = None
    ) -> List[Callable[[Version], bool]]:
        predicates: List[Callable[[Version], bool]] = []
        if spec is None or spec.is_empty:
            return predicates
        if spec.family_id is not None:
            family_id = spec.family_id
            predicates.append(lambda version: version.family_id == family_id)
        if spec.support_status is not None:
            predicates.append(
                self._support.has_status(spec.support_status, at=at)
            )
        return predicates

    @staticmethod
    def build_predicates(
        spec: Optional[BuildFilter],
    ) -> List[Callable[[Build], bool]]:
        predicates: List[Callable[[Build], bool]] = []
        if spec is not None and not spec.is_empty:
            channel = spec.channel
            predicates.append(lambda build: build.channel is channel)
        return predicates

    def list_families(self, project_name: str) -> Optional[tuple[Family, ...]]:
        project = self.find_project(project_name)
        if project is None:
            return None
        with collaborator_call("FamilyRepository", "find_all_by_parent"):
            families = self._families.find_all_by_parent(project)
        return _bounded(families, created_at_desc_key, None)

    def list_versions(
        self,
        project_name: str,
        spec: Optional[VersionFilter] = None,
        limit: Optional[int] = None,
        *,
        at: Optional[datetime] = None,
    ) -> Optional[VersionListing]:
        """
        Return the versions of a project newest first.

        ``None`` means the project does not exist; an empty listing means it
        exists but nothing matched.
        """
        limit = validate_limit(limit)
        project = self.find_project(project_name)
        if project is None:
            return None
        instant = at or self._support.now()
        predicate = all_of(self.version_predicates(spec, instant))
        with collaborator_call("VersionRepository", "find_all_by_parent"):
            candidates = self._versions.find_all_by_parent(
                project, predicate, limit
            )
        versions = _bounded(candidates, created_at_desc_key, limit)
        _LOGGER.debug(
            "Listed %d version(s) of %s (filter=%s, limit=%s)",
            len(versions),
            project.name,
            spec,
            limit,
        )
        return VersionListing(project=project, versions=versions)

    def list_builds(
        self,
        project_name: str,
        version_name: str,
        spec: Optional[BuildFilter] = None,
        limit: Optional[int] = None,
    ) -> Optional[BuildListing]:
        """Return the builds of a version, most recently created first."""
        limit = validate_limit(limit)
        project = self.find_project(project_name)
        if project is None:
            return None
        version = self.find_version(project, version_name)
        if version is None:
            return None
        predicate = all_of(self.build_predicates(spec))
        with collaborator_call("BuildRepository", "find_all_by_parent"):
            candidates = self._builds.find_all_by_parent(
                version, predicate, limit
            )
        builds = _bounded(candidates, build_order_key, limit)
        _LOGGER.debug(
            "Listed %d build(s) of %s/%s (filter=%s, limit=%s)",
            len(builds),
            project.name,
            version.name,
            spec,
            limit,
        )
        return BuildListing(project=project, version=version, builds=builds)
