"""Boundary conditions restricting a sorted resultset to the rows strictly
after (or before) a cursor."""
from __future__ import annotations

import operator
from typing import Any, NamedTuple, Tuple

from .serial import InvalidCursorError
from .types import Cursor, OrderSpec

OPERATORS = {
    "eq": operator.eq,
    "gt": operator.gt,
    "lt": operator.lt,
}


class Comparison(NamedTuple):
    """``<field> <op> <value>``, where `op` is one of ``"eq"``, ``"gt"`` or
    ``"lt"``."""

    name: str
    op: str
    value: Any

    def apply(self, lhs):
        """Apply this comparison to `lhs`, which can be a plain value or a SQL
        expression."""
        return OPERATORS[self.op](lhs, self.value)

    def evaluate(self, get) -> bool:
        return bool(self.apply(get(self.name)))


class Conjunction(NamedTuple):
    terms: Tuple[Comparison, ...]

    def evaluate(self, get) -> bool:
        return all(t.evaluate(get) for t in self.terms)


class Disjunction(NamedTuple):
    terms: Tuple[Conjunction, ...]

    def evaluate(self, get) -> bool:
        return any(t.evaluate(get) for t in self.terms)


def compare_tuples(names, values, ops) -> Disjunction:
    """Given field names, cursor values and the strict comparison to use for
    each field, create the lexicographic comparison of the row's tuple against
    the cursor's tuple.

    For ``(a, b, c)`` this is::

        a > x OR (a = x AND b > y) OR (a = x AND b = y AND c > z)
    """
    return Disjunction(
        tuple(
            Conjunction(
                tuple(Comparison(names[i], "eq", values[i]) for i in range(depth))
                + (Comparison(names[depth], ops[depth], values[depth]),)
            )
            for depth in range(len(names))
        )
    )


def boundary_predicate(
    order_spec: OrderSpec, cursor: Cursor, backwards: bool = False
) -> Disjunction:
    """Construct the condition required to restrict a resultset sorted by
    `order_spec` to the rows strictly after `cursor` (or strictly before it,
    if `backwards`).

    :param order_spec: The ordering of the resultset.
    :param cursor: The decoded position to start from.
    :param backwards: Whether the traversal runs against `order_spec`.
    :returns: A :class:`Disjunction` of :class:`Conjunction` terms, one per
        ordering field.
    """
    if len(order_spec) != len(cursor):
        raise InvalidCursorError(
            "Cursor has different field count to query's ordering"
        )

    if backwards:
        order_spec = tuple(f.reversed for f in order_spec)

    names = [f.name for f in order_spec]
    values = [c.value for c in cursor]
    ops = ["gt" if f.is_ascending else "lt" for f in order_spec]
    return compare_tuples(names, values, ops)
