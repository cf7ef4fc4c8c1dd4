"""OrderField/Cursor types"""
from __future__ import annotations

from typing import Any, NamedTuple, Tuple

ASC = "asc"
DESC = "desc"
SORT_DIRECTIONS = (ASC, DESC)

FORWARD = "forward"
BACKWARD = "backward"
DIRECTIONS = (FORWARD, BACKWARD)


class OrderField(NamedTuple):
    """A single sort key: a field name and its sort direction (``"asc"`` or
    ``"desc"``)."""

    name: str
    direction: str = ASC

    @property
    def is_ascending(self) -> bool:
        return self.direction == ASC

    @property
    def reversed(self) -> OrderField:
        """The same field, sorted the other way."""
        return OrderField(self.name, DESC if self.is_ascending else ASC)


OrderSpec = Tuple[OrderField, ...]
"""A tuple of :class:`OrderField`, ending in a field that is unique per
record, describing a total order over a resultset."""


class CursorField(NamedTuple):
    name: str
    value: Any


Cursor = Tuple[CursorField, ...]
"""A tuple with one :class:`CursorField` per entry of an :data:`OrderSpec`,
representing a place in a sorted resultset."""
