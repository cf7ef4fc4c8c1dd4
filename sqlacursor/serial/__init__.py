from .serial import (
    ConfigurationError,
    CursorSerializationError,
    InvalidCursorError,
    PaginationError,
    Serial,
    UnregisteredType,
)

__all__ = [
    "ConfigurationError",
    "CursorSerializationError",
    "InvalidCursorError",
    "PaginationError",
    "Serial",
    "UnregisteredType",
]
