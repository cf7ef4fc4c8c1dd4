"""Cursor (de)serialization logic."""
import base64
import binascii
import datetime
import decimal
import json
import uuid

import dateutil.parser


class PaginationError(ValueError):
    """Base class for errors raised while paginating a resultset."""


class InvalidCursorError(PaginationError):
    """A cursor string failed to parse, or doesn't match the ordering of the
    query it was given to."""


class CursorSerializationError(ValueError):
    """Generic serialization error."""


class UnregisteredType(NotImplementedError):
    """An unregistered type was encountered when serializing a cursor."""


class ConfigurationError(Exception):
    """An error to do with configuring custom cursor types."""


TYPE_KEY = "t"
VALUE_KEY = "v"

# Values of these exact types are written to the JSON payload unchanged.
NATIVE_TYPES = (type(None), bool, int, float, str)

# Unregistered subclasses of these, such as IntEnum members, are written as
# their plain base value.
NATIVE_BASES = ((int, int.__int__), (float, float.__float__), (str, str.__str__))


def parsedate(x):
    return dateutil.parser.parse(x).date()


def parsetime(x):
    return dateutil.parser.parse(x).timetz()


def binencode(x):
    return base64.b64encode(x).decode("utf-8")


def bindecode(x):
    return base64.b64decode(x.encode("utf-8"))


TYPES = [
    (bytes, "b", bindecode, binencode),
    (decimal.Decimal, "n"),
    (uuid.UUID, "uuid"),
    (datetime.datetime, "dt", dateutil.parser.parse),
    (datetime.date, "d", parsedate),
    (datetime.time, "t", parsetime),
]


class Serial(object):
    def __init__(self):
        self.serializers = {}
        self.deserializers = {}
        for definition in TYPES:
            self.register_type(*definition)

    def register_type(self, type, code, deserializer=None, serializer=None):
        if serializer is None:
            serializer = str
        if deserializer is None:
            deserializer = type
        if type in self.serializers:
            raise ConfigurationError(
                "Type {} already has a serializer registered.".format(type)
            )
        if code in self.deserializers:
            raise ConfigurationError("Type code {} is already in use.".format(code))
        self.serializers[type] = lambda x: (code, serializer(x))
        self.deserializers[code] = deserializer

    def _find_serializer(self, x):
        for cls in type(x).__mro__:
            try:
                return self.serializers[cls]
            except KeyError:
                continue
        return None

    def serialize_value(self, x):
        if type(x) in NATIVE_TYPES:
            return x

        serializer = self._find_serializer(x)
        if serializer is None:
            for base, to_native in NATIVE_BASES:
                if isinstance(x, base):
                    return to_native(x)
            raise UnregisteredType(
                "Don't know how to serialize type of {} ({}). "
                "Use custom_cursor_type to register it.".format(x, type(x))
            )
        try:
            c, v = serializer(x)
        except Exception as e:
            raise CursorSerializationError(
                "Custom cursor serializer encountered error"
            ) from e
        return {TYPE_KEY: c, VALUE_KEY: v}

    def unserialize_value(self, x):
        if not isinstance(x, dict):
            return x

        if set(x) != {TYPE_KEY, VALUE_KEY}:
            raise InvalidCursorError("unrecognized value {!r}".format(x))

        try:
            deserializer = self.deserializers[x[TYPE_KEY]]
        except (KeyError, TypeError):
            raise InvalidCursorError("unrecognized value type {!r}".format(x[TYPE_KEY]))

        try:
            return deserializer(x[VALUE_KEY])
        except Exception as e:
            raise InvalidCursorError(
                "Custom cursor deserializer encountered error"
            ) from e

    def serialize_fields(self, fields):
        """Serialize ``(name, value)`` pairs to a base64-encoded JSON list of
        single-key objects."""
        payload = [{name: self.serialize_value(value)} for name, value in fields]
        joined = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        return base64.b64encode(joined.encode("utf-8")).decode("ascii")

    def unserialize_fields(self, s):
        """Inverse of :meth:`serialize_fields`: returns a list of ``(name,
        value)`` pairs."""
        try:
            raw = base64.b64decode(s.encode("ascii"), validate=True)
            payload = json.loads(raw.decode("utf-8"))
        except (AttributeError, UnicodeError, binascii.Error, ValueError) as e:
            raise InvalidCursorError("The given cursor could not be decoded") from e

        if not isinstance(payload, list):
            raise InvalidCursorError("The given cursor could not be decoded")

        fields = []
        for item in payload:
            if not isinstance(item, dict) or len(item) != 1:
                raise InvalidCursorError("The given cursor could not be decoded")
            ((name, value),) = item.items()
            fields.append((name, self.unserialize_value(value)))
        return fields
