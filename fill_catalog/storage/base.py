"""Abstract repository interfaces for the catalog read path."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, TypeVar

from fill_catalog.models import Build, Family, Project, Version

T = TypeVar("T")

Predicate = Callable[[T], bool]


class ProjectRepository(Protocol):
    """Lookup contract for projects."""

    def find_all(self) -> Sequence[Project]:
        """Return every project in no particular order."""

    def find_by_name(self, name: str) -> Optional[Project]:
        """Return the project with the globally unique ``name``."""

    def find_by_id(self, project_id: str) -> Optional[Project]:
        """Return the project with ``project_id`` if present."""


class FamilyRepository(Protocol):
    """Lookup contract for families within a project."""

    def find_all_by_parent(
        self,
        project: Project,
        predicate: Optional[Predicate[Family]] = None,
        limit: Optional[int] = None,
    ) -> Sequence[Family]:
        """
        Return families of ``project`` newest first.

        The predicate is applied before the limit.
        """

    def find_by_name(self, project: Project, name: str) -> Optional[Family]:
        """Return the family named ``name`` within ``project``."""

    def find_by_id(self, family_id: str) -> Optional[Family]:
        """Return a family by id regardless of owning project."""


class VersionRepository(Protocol):
    """Lookup contract for versions within a project."""

    def find_all_by_parent(
        self,
        project: Project,
        predicate: Optional[Predicate[Version]] = None,
        limit: Optional[int] = None,
    ) -> Sequence[Version]:
        """
        Return versions of ``project`` newest first.

        The predicate is applied before the limit.
        """

    def find_by_name(self, project: Project, name: str) -> Optional[Version]:
        """Return the version named ``name`` within ``project``."""


class BuildRepository(Protocol):
    """Lookup contract for builds within a version."""

    def find_all_by_parent(
        self,
        version: Version,
        predicate: Optional[Predicate[Build]] = None,
        limit: Optional[int] = None,
    ) -> Sequence[Build]:
        """
        Return builds of ``version`` most recently created first.

        The predicate is applied before the limit.
        """

    def find_by_name(self, version: Version, build_id: str) -> Optional[Build]:
        """Return the build with ``build_id`` within ``version``."""

    def find_by_number(self, version: Version, number: int) -> Optional[Build]:
        """Return the build numbered ``number`` within ``version``."""
