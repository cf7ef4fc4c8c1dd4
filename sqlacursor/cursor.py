"""Cursor encoding/decoding and the cursor value type registry."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional, Type, TypeVar

from .serial import InvalidCursorError, Serial
from .types import Cursor, CursorField, OrderSpec

s = Serial()


T = TypeVar("T")


def custom_cursor_type(
    type: Type[T],
    code: str,
    deserializer: Optional[Callable[[str], T]] = None,
    serializer: Optional[Callable[[T], str]] = None,
):
    """Register (de)serializers for cursors to use for a custom type.

    :param type: Python type to register.
    :paramtype type: type
    :param code: A short alphabetic code to use to identify this type in
        serialized cursors.
    :paramtype code: str
    :param serializer: A function mapping `type` values to strings. Default is
        `str`.
    :param deserializer: Inverse for `serializer`. Default is the `type`
        constructor."""
    s.register_type(type, code, deserializer=deserializer, serializer=serializer)


def get_value(record, name) -> Any:
    """Read the value of the field `name` off a result record: a mapping, a
    SQLAlchemy row, or any object with attributes."""
    if isinstance(record, Mapping):
        return record[name]
    mapping = getattr(record, "_mapping", None)
    if mapping is not None:
        return mapping[name]
    return getattr(record, name)


def encode_cursor(record, order_spec: OrderSpec, getter=get_value) -> str:
    """Serialize the position of `record` under `order_spec` to a cursor
    string.

    :returns: A base64-encoded JSON list with one single-key object per
        ordering field, e.g. ``[{"display_index": 3}, {"id": 17}]``."""
    return s.serialize_fields((f.name, getter(record, f.name)) for f in order_spec)


def decode_cursor(cursor: str, order_spec: OrderSpec) -> Cursor:
    """Deserialize a cursor string produced by :func:`encode_cursor`.

    :raises InvalidCursorError: if the string can't be parsed, or wasn't
        produced under the same ordering as `order_spec`.
    """
    fields = s.unserialize_fields(cursor)

    if [name for name, _ in fields] != [f.name for f in order_spec]:
        raise InvalidCursorError(
            "The given cursor is mismatched with current query"
        )

    return tuple(CursorField(name, value) for name, value in fields)
