"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Cursor-based pagination over already ordered result lists.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Generic, Optional, Sequence, TypeVar

from fill_catalog.errors import InvalidFilter
from fill_catalog.models.views import Connection, Edge, PageInfo

T = TypeVar("T")
K = TypeVar("K")

MAX_FIRST = 100
MAX_LAST = 100


class OrderDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class CursorCodec(Generic[K]):
    """Encode sort keys as opaque base64 cursors."""

    encoder: Callable[[K], str]
    decoder: Callable[[str], K]

    def encode(self, value: K) -> str:
        try:
            raw = self.encoder(value)
        except (TypeError, ValueError) as exc:
            raise InvalidFilter("Invalid cursor") from exc
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def decode(self, cursor: str) -> K:
        try:
            raw = base64.b64decode(cursor.encode("ascii"), validate=True)
            return self.decoder(raw.decode("utf-8"))
        except (
            binascii.Error,
            UnicodeError,
            TypeError,
            ValueError,
            AttributeError,
        ) as exc:
            raise InvalidFilter("Invalid cursor") from exc


INT_CODEC: CursorCodec[int] = CursorCodec(encoder=str, decoder=int)


def _decode_datetime(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("cursor timestamp must be timezone-aware")
    return value


DATETIME_CODEC: CursorCodec[datetime] = CursorCodec(
    encoder=lambda value: value.isoformat(),
    decoder=_decode_datetime,
)


def check_connection_parameters(
    name: str,
    first: Optional[int],
    last: Optional[int],
) -> None:
    """Reject missing, ambiguous, negative or excessive page sizes."""
    if first is None and last is None:
        raise InvalidFilter(
            f"You must provide a `first` or `last` value to properly "
            f"paginate the `{name}` connection."
        )
    if first is not None and last is not None:
        raise InvalidFilter(
            f"Passing both `first` and `last` to paginate the `{name}` "
            "connection is not supported."
        )
    for label, value, maximum in (
        ("first", first, MAX_FIRST),
        ("last", last, MAX_LAST),
    ):
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidFilter(
                f"`{label}` on the `{name}` connection must be an integer."
            )
        if value < 0:
            raise InvalidFilter(
                f"`{label}` on the `{name}` connection cannot be less than "
                "zero."
            )
        if value > maximum:
            raise InvalidFilter(
                f"Requesting {value} records on the `{name}` connection "
                f"exceeds the `{label}` limit of {maximum} records."
            )


class CursorPaginator(Generic[T, K]):
    """
    Slice a result list into a relay-style connection.

    Items are sorted by ``key_getter`` ascending for ``ASC`` and descending
    for ``DESC`` (the default), then narrowed by ``after``/``before`` cursors
    and cut to ``first`` or ``last`` entries.
    """

    def __init__(
        self,
        name: str,
        key_getter: Callable[[T], K],
        codec: CursorCodec[K],
        default_direction: OrderDirection = OrderDirection.DESC,
    ) -> None:
        self._name = name
        self._key_getter = key_getter
        self._codec = codec
        self._default_direction = default_direction

    def paginate(
        self,
        items: Sequence[T],
        *,
        direction: Optional[OrderDirection] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
    ) -> Connection:
        check_connection_parameters(self._name, first, last)
        reverse = self._direction(direction) is OrderDirection.DESC
        ordered = sorted(items, key=self._key_getter, reverse=reverse)

        if after is not None:
            after_key = self._codec.decode(after)
            ordered = [
                item for item in ordered
                if self._comes_after(self._key_getter(item), after_key, reverse)
            ]
        if before is not None:
            before_key = self._codec.decode(before)
            ordered = [
                item for item in ordered
                if self._comes_after(before_key, self._key_getter(item), reverse)
            ]

        has_next = False
        has_previous = False
        if first is not None:
            window = ordered[:first]
            has_next = len(ordered) > first
            has_previous = after is not None
        else:
            assert last is not None
            window = ordered[-last:] if last else []
            has_previous = len(ordered) > last
            has_next = before is not None

        edges = tuple(
            Edge(node=item, cursor=self._codec.encode(self._key_getter(item)))
            for item in window
        )
        if edges:
            page_info = PageInfo(
                start_cursor=edges[0].cursor,
                end_cursor=edges[-1].cursor,
                has_previous_page=has_previous,
                has_next_page=has_next,
            )
        else:
            page_info = PageInfo()
        return Connection(
            edges=edges, page_info=page_info, total_count=len(items)
        )

    def _direction(self, direction: Optional[object]) -> OrderDirection:
        if direction is None:
            return self._default_direction
        try:
            return OrderDirection(direction)
        except (TypeError, ValueError) as exc:
            raise InvalidFilter(
                f"Unknown order direction {direction!r} on the "
                f"`{self._name}` connection."
            ) from exc

    @staticmethod
    def _comes_after(candidate: K, anchor: K, reverse: bool) -> bool:
        if reverse:
            return candidate < anchor  # type: ignore[operator]
        return candidate > anchor  # type: ignore[operator]
