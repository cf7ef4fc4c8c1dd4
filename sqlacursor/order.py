"""Normalization of ordering clauses into an :data:`.types.OrderSpec`: a
sequence of plain field references that ends in a unique identifier field."""
import re
from collections.abc import Mapping
from typing import List
from warnings import warn

from sqlalchemy import Column
from sqlalchemy.orm.attributes import QueryableAttribute
from sqlalchemy.sql.elements import (
    ClauseElement,
    ColumnClause,
    Label,
    TextClause,
    UnaryExpression,
    _label_reference,
    _textual_label_reference,
)
from sqlalchemy.sql.operators import asc_op, desc_op, nullsfirst_op, nullslast_op

from .serial import PaginationError
from .types import ASC, DESC, SORT_DIRECTIONS, OrderField, OrderSpec

ID_FIELD_DEFAULT = "id"

_ORDER_MODIFIERS = (asc_op, desc_op, nullsfirst_op, nullslast_op)
_UNSUPPORTED_ORDER_MODIFIERS = (nullsfirst_op, nullslast_op)
_CLAUSE = re.compile(r"\A(\w+)(?:\s+(asc|desc))?\Z", re.IGNORECASE)
_IDENTIFIER = re.compile(r"\A\w+\Z")


class InvalidOrderError(PaginationError):
    """The ordering of a query contains something other than plain field
    references, so it can't be paginated with a cursor."""


def _unsupported(x):
    return InvalidOrderError("unsupported order: {!r}".format(x))


def _check_direction(direction, x):
    if not isinstance(direction, str) or direction.lower() not in SORT_DIRECTIONS:
        raise _unsupported(x)
    return direction.lower()


def _check_name(name, x):
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise _unsupported(x)
    return name


def parse_order_text(text) -> List[OrderField]:
    """Parse a textual clause such as ``"display_index desc, id"``."""
    fields = []
    for part in text.split(","):
        m = _CLAUSE.match(part.strip())
        if m is None:
            raise _unsupported(text)
        fields.append(OrderField(m.group(1), (m.group(2) or ASC).lower()))
    return fields


def _warn_if_nullable(x):
    if isinstance(x, Column) and x.nullable:
        warn(
            "Ordering by nullable column {} can cause rows to be "
            "incorrectly omitted from the results.".format(x),
            stacklevel=4,
        )


def _is_pair(x):
    return (
        isinstance(x, tuple)
        and len(x) == 2
        and isinstance(x[1], str)
        and x[1].lower() in SORT_DIRECTIONS
    )


def _unwrap(x):
    """Strip ``asc()``/``desc()``/nulls modifiers and label references off an
    ordering clause. Returns the inner element, the outermost direction (or
    ``None``) and whether a nulls modifier was seen."""
    direction = None
    nulls = False
    el = x
    while True:
        if isinstance(el, _label_reference):
            el = el.element
        elif isinstance(el, UnaryExpression) and el.modifier in _ORDER_MODIFIERS:
            if el.modifier in _UNSUPPORTED_ORDER_MODIFIERS:
                nulls = True
            elif direction is None:
                direction = ASC if el.modifier == asc_op else DESC
            el = el.element
        else:
            return el, direction, nulls


def _sql_order_fields(x) -> List[OrderField]:
    el, direction, nulls = _unwrap(x)
    if nulls:
        warn(
            "One of your order columns had a NULLS FIRST or NULLS LAST "
            "modifier; but sqlacursor does not support order columns "
            "with nulls. YOUR RESULTS WILL BE WRONG."
        )

    if isinstance(el, _textual_label_reference):
        fields = parse_order_text(el.element)
    elif isinstance(el, TextClause):
        fields = parse_order_text(el.text)
    elif isinstance(el, Label):
        if not isinstance(el.element, ColumnClause) or el.element.is_literal:
            raise _unsupported(x)
        _warn_if_nullable(el.element)
        fields = [OrderField(_check_name(el.name, x))]
    elif isinstance(el, ColumnClause):
        if el.is_literal:
            fields = parse_order_text(el.name)
        else:
            _warn_if_nullable(el)
            fields = [OrderField(_check_name(column_key(el), x))]
    else:
        raise _unsupported(x)

    if direction is not None:
        # desc(text("a, b desc")) has no single meaning
        if len(fields) != 1:
            raise _unsupported(x)
        fields = [OrderField(fields[0].name, direction)]
    return fields


def column_key(col) -> str:
    """The name an ORM or Core column is known by: its mapped attribute key
    where there is one, else its key."""
    return col._annotations.get("proxy_key") or col.key


def qualified_name(col) -> str:
    """A field name for `col` that includes the name of its table, like
    ``author__name``.

    :raises InvalidOrderError: if the table has no usable name, as with
        anonymous aliases. Order by a label over the column instead."""
    name = "{}__{}".format(getattr(col.table, "name", None), column_key(col))
    return _check_name(name, col)


def order_column(x):
    """Return ``(name, column)`` for an ordering term `x` that is a (possibly
    wrapped or labelled) reference to a table column, else ``None``. `name` is
    the label name for labels, else the column's key."""
    if isinstance(x, QueryableAttribute):
        x = x.__clause_element__()
    if not isinstance(x, ClauseElement):
        return None
    el, _, _ = _unwrap(x)
    name = None
    if isinstance(el, Label):
        name = el.name
        el = el.element
    if (
        isinstance(el, ColumnClause)
        and not el.is_literal
        and getattr(el, "table", None) is not None
    ):
        return name or column_key(el), el
    return None


def order_field_for(x) -> List[OrderField]:
    """Return the :class:`.types.OrderField` instances described by a single
    ordering term.

    :param x: One of: an :class:`.types.OrderField`; a textual clause like
        ``"name desc, id"``; a ``(name, direction)`` pair; a mapping of names
        to directions; or a SQLAlchemy column, ORM attribute, ``asc()``/``desc()``
        wrapper, label over a column or ``text()`` clause.
    :raises InvalidOrderError: if `x` is anything else, for instance a
        function call or a computed expression.
    """
    if isinstance(x, OrderField):
        return [OrderField(_check_name(x.name, x), _check_direction(x.direction, x))]
    if isinstance(x, str):
        return parse_order_text(x)
    if _is_pair(x):
        return [OrderField(_check_name(x[0], x), _check_direction(x[1], x))]
    if isinstance(x, Mapping):
        return [
            OrderField(_check_name(name, x), _check_direction(direction, x))
            for name, direction in x.items()
        ]
    if isinstance(x, QueryableAttribute):
        x = x.__clause_element__()
    if isinstance(x, ClauseElement):
        return _sql_order_fields(x)
    raise _unsupported(x)


def normalize_order(raw, id_field=ID_FIELD_DEFAULT) -> OrderSpec:
    """Turn an ordering specification into an :data:`.types.OrderSpec`.

    Fields repeated later in the ordering are dropped, as are fields after
    `id_field`. If the ordering doesn't end in `id_field`, it is appended in
    ascending order, so that the result always totally orders the rows. An
    empty ordering orders by `id_field` alone.

    :param raw: A single ordering term or a list of them (see
        :func:`order_field_for`), or ``None``.
    :param id_field: The name of a field whose value is unique per record.
    :raises InvalidOrderError: if any term is not a plain field reference.
    """
    if raw is None:
        terms = []
    elif (
        isinstance(raw, (list, tuple))
        and not isinstance(raw, OrderField)
        and not _is_pair(raw)
    ):
        terms = list(raw)
    else:
        terms = [raw]

    fields = []
    seen = set()
    for term in terms:
        for field in order_field_for(term):
            if field.name in seen:
                continue
            seen.add(field.name)
            fields.append(field)

    spec = []
    for field in fields:
        spec.append(field)
        if field.name == id_field:
            break
    else:
        spec.append(OrderField(id_field, ASC))
    return tuple(spec)
