"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Filter specifications accepted by the listing engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fill_catalog.errors import InvalidFilter

from .entities import BuildChannel, SupportStatus


@dataclass(frozen=True)
class VersionFilter:
    """
    Optional predicates for versions under a project.

    Every populated field must match (AND semantics). ``support_status`` is
    compared with the resolved status, not the stored tag.
    """

    family_id: Optional[str] = None
    support_status: Optional[SupportStatus] = None

    def __post_init__(self) -> None:
        if self.family_id is not None and not isinstance(self.family_id, str):
            raise InvalidFilter("family_id must be a string")
        if self.support_status is not None and not isinstance(
            self.support_status, SupportStatus
        ):
            raise InvalidFilter(
                f"Support status '{self.support_status}' is not recognized"
            )

    @property
    def is_empty(self) -> bool:
        return self.family_id is None and self.support_status is None


@dataclass(frozen=True)
class BuildFilter:
    """Optional predicates for builds under a version."""

    channel: Optional[BuildChannel] = None

    def __post_init__(self) -> None:
        if self.channel is not None and not isinstance(
            self.channel, BuildChannel
        ):
            raise InvalidFilter(f"Build channel '{self.channel}' is invalid")

    @property
    def is_empty(self) -> bool:
        return self.channel is None


def validate_limit(limit: Optional[int]) -> Optional[int]:
    """Return ``limit`` unchanged or raise InvalidFilter.

    ``None`` means unbounded and zero is a legal, empty request.
    """
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidFilter(f"limit must be an integer, got {limit!r}")
    if limit < 0:
        raise InvalidFilter(f"limit cannot be negative (got {limit})")
    return limit
