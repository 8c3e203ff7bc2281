"""In-memory repository implementations for development and tests."""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from fill_catalog.models import (Build, Family, Project, Version,
                                 build_order_key, created_at_desc_key)

from .base import (BuildRepository, FamilyRepository, Predicate,
                   ProjectRepository, VersionRepository)
from .errors import ValidationError


def _select(
    items: Iterable[Any],
    order_key: Callable[[Any], Any],
    predicate: Optional[Callable[[Any], bool]],
    limit: Optional[int],
) -> List[Any]:
    if limit is not None and limit < 0:
        raise ValidationError("limit must be non-negative")
    ordered = sorted(items, key=order_key)
    if predicate is not None:
        ordered = [item for item in ordered if predicate(item)]
    if limit is not None:
        ordered = ordered[:limit]
    return ordered


class InMemoryCatalog:
    """
    Dictionary-backed catalog exposing one repository per entity type.

    Writers publish a fresh read-only mapping under a lock, so readers always
    see a complete snapshot without locking.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._projects: Mapping[str, Project] = MappingProxyType({})
        self._families: Mapping[str, Family] = MappingProxyType({})
        self._versions: Mapping[str, Version] = MappingProxyType({})
        self._builds: Mapping[str, Build] = MappingProxyType({})
        self.projects = InMemoryProjectRepository(self)
        self.families = InMemoryFamilyRepository(self)
        self.versions = InMemoryVersionRepository(self)
        self.builds = InMemoryBuildRepository(self)

    @staticmethod
    def _publish(
        current: Mapping[str, Any], key: str, value: Any
    ) -> Mapping[str, Any]:
        updated: Dict[str, Any] = dict(current)
        updated[key] = value
        return MappingProxyType(updated)

    def add_project(self, project: Project) -> Project:
        with self._lock:
            if project.id in self._projects:
                raise ValidationError(f"Project '{project.id}' already exists")
            if any(p.name == project.name for p in self._projects.values()):
                raise ValidationError(
                    f"Project name '{project.name}' already exists"
                )
            self._projects = self._publish(self._projects, project.id, project)
        return project

    def add_family(self, family: Family) -> Family:
        with self._lock:
            if family.project_id not in self._projects:
                raise ValidationError(
                    f"Project '{family.project_id}' does not exist"
                )
            if family.id in self._families:
                raise ValidationError(f"Family '{family.id}' already exists")
            if any(
                f.project_id == family.project_id and f.name == family.name
                for f in self._families.values()
            ):
                raise ValidationError(
                    f"Family name '{family.name}' already exists in project "
                    f"'{family.project_id}'"
                )
            self._families = self._publish(self._families, family.id, family)
        return family

    def add_version(self, version: Version) -> Version:
        with self._lock:
            if version.project_id not in self._projects:
                raise ValidationError(
                    f"Project '{version.project_id}' does not exist"
                )
            if version.id in self._versions:
                raise ValidationError(f"Version '{version.id}' already exists")
            if any(
                v.project_id == version.project_id and v.name == version.name
                for v in self._versions.values()
            ):
                raise ValidationError(
                    f"Version name '{version.name}' already exists in project "
                    f"'{version.project_id}'"
                )
            self._versions = self._publish(
                self._versions, version.id, version
            )
        return version

    def add_build(self, build: Build) -> Build:
        with self._lock:
            if build.version_id not in self._versions:
                raise ValidationError(
                    f"Version '{build.version_id}' does not exist"
                )
            if build.id in self._builds:
                raise ValidationError(f"Build '{build.id}' already exists")
            if any(
                b.version_id == build.version_id and b.number == build.number
                for b in self._builds.values()
            ):
                raise ValidationError(
                    f"Build number {build.number} already exists in version "
                    f"'{build.version_id}'"
                )
            self._builds = self._publish(self._builds, build.id, build)
        return build


class InMemoryProjectRepository(ProjectRepository):
    def __init__(self, catalog: InMemoryCatalog) -> None:
        self._catalog = catalog

    def find_all(self) -> List[Project]:
        return list(self._catalog._projects.values())

    def find_by_name(self, name: str) -> Optional[Project]:
        for project in self._catalog._projects.values():
            if project.name == name:
                return project
        return None

    def find_by_id(self, project_id: str) -> Optional[Project]:
        return self._catalog._projects.get(project_id)


class InMemoryFamilyRepository(FamilyRepository):
    def __init__(self, catalog: InMemoryCatalog) -> None:
        self._catalog = catalog

    def find_all_by_parent(
        self,
        project: Project,
        predicate: Optional[Predicate[Family]] = None,
        limit: Optional[int] = None,
    ) -> List[Family]:
        children = (
            family
            for family in self._catalog._families.values()
            if family.project_id == project.id
        )
        return _select(children, created_at_desc_key, predicate, limit)

    def find_by_name(self, project: Project, name: str) -> Optional[Family]:
        for family in self._catalog._families.values():
            if family.project_id == project.id and family.name == name:
                return family
        return None

    def find_by_id(self, family_id: str) -> Optional[Family]:
        return self._catalog._families.get(family_id)


class InMemoryVersionRepository(VersionRepository):
    def __init__(self, catalog: InMemoryCatalog) -> None:
        self._catalog = catalog

    def find_all_by_parent(
        self,
        project: Project,
        predicate: Optional[Predicate[Version]] = None,
        limit: Optional[int] = None,
    ) -> List[Version]:
        children = (
            version
            for version in self._catalog._versions.values()
            if version.project_id == project.id
        )
        return _select(children, created_at_desc_key, predicate, limit)

    def find_by_name(self, project: Project, name: str) -> Optional[Version]:
        for version in self._catalog._versions.values():
            if version.project_id == project.id and version.name == name:
                return version
        return None


class InMemoryBuildRepository(BuildRepository):
    def __init__(self, catalog: InMemoryCatalog) -> None:
        self._catalog = catalog

    def find_all_by_parent(
        self,
        version: Version,
        predicate: Optional[Predicate[Build]] = None,
        limit: Optional[int] = None,
    ) -> List[Build]:
        children = (
            build
            for build in self._catalog._builds.values()
            if build.version_id == version.id
        )
        return _select(children, build_order_key, predicate, limit)

    def find_by_name(self, version: Version, build_id: str) -> Optional[Build]:
        build = self._catalog._builds.get(build_id)
        if build is None or build.version_id != version.id:
            return None
        return build

    def find_by_number(self, version: Version, number: int) -> Optional[Build]:
        for build in self._catalog._builds.values():
            if build.version_id == version.id and build.number == number:
                return build
        return None
