from .cursor import custom_cursor_type, decode_cursor, encode_cursor
from .order import InvalidOrderError, normalize_order
from .paging import PER_PAGE_DEFAULT, Paginator, get_page, paginate, select_page
from .predicates import boundary_predicate
from .results import Page
from .serial import (
    ConfigurationError,
    CursorSerializationError,
    InvalidCursorError,
    PaginationError,
    UnregisteredType,
)
from .sources import QuerySource, SelectSource, SequenceSource, Source
from .types import (
    ASC,
    BACKWARD,
    DESC,
    FORWARD,
    Cursor,
    CursorField,
    OrderField,
    OrderSpec,
)

__all__ = [
    "get_page",
    "select_page",
    "paginate",
    "encode_cursor",
    "decode_cursor",
    "normalize_order",
    "boundary_predicate",
    "custom_cursor_type",
    "Page",
    "Paginator",
    "PER_PAGE_DEFAULT",
    "Source",
    "SelectSource",
    "QuerySource",
    "SequenceSource",
    "OrderField",
    "OrderSpec",
    "CursorField",
    "Cursor",
    "ASC",
    "DESC",
    "FORWARD",
    "BACKWARD",
    "PaginationError",
    "InvalidOrderError",
    "InvalidCursorError",
    "ConfigurationError",
    "CursorSerializationError",
    "UnregisteredType",
]
