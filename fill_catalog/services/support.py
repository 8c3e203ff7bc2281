"""Resolve a version's effective support status at a point in time."""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Callable, Optional

from fill_catalog.models import StoredSupport, Support, SupportStatus, Version

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_support(stored: StoredSupport, now: datetime) -> Support:
    """
    Return the support descriptor in effect at ``now``.

    A stored end date that has been reached (``now`` at or after midnight UTC
    on that day) forces ``EOL`` whatever the stored tag says; otherwise the
    stored status passes through unchanged.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("Evaluation time must be timezone-aware")
    if stored.end is not None and stored.status is not SupportStatus.EOL:
        end_of_support = datetime.combine(stored.end, time.min, timezone.utc)
        if now >= end_of_support:
            return Support(status=SupportStatus.EOL, end=stored.end)
    return Support(status=stored.status, end=stored.end)


class SupportResolver:
    """Applies :func:`resolve_support` with an injectable clock."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def resolve(
        self, version: Version, *, at: Optional[datetime] = None
    ) -> Support:
        return resolve_support(version.support, at or self._clock())

    def has_status(
        self, status: SupportStatus, *, at: Optional[datetime] = None
    ) -> Callable[[Version], bool]:
        """Predicate matching versions whose resolved status is ``status``.

        The evaluation instant is fixed when the predicate is built so every
        candidate in one listing is judged at the same time.
        """
        instant = at or self._clock()

        def _matches(version: Version) -> bool:
            return resolve_support(version.support, instant).status is status

        return _matches
