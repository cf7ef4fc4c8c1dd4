"""Methods for poking at the internals of SQLAlchemy 1.4/2.0 selectables."""
from __future__ import annotations

from sqlalchemy import and_, asc, desc, or_
from sqlalchemy.sql.expression import ClauseList, Label


def _flatten(cl):
    if isinstance(cl, ClauseList):
        for subclause in cl.clauses:
            for x in _flatten(subclause):
                yield x
    elif isinstance(cl, (tuple, list)):
        for xs in cl:
            for x in _flatten(xs):
                yield x
    else:
        yield cl


def order_by_clauses(selectable):
    """Extract the flattened ORDER BY clause list from a select/query"""
    return list(_flatten(selectable._order_by_clauses))


def group_by_clauses(selectable):
    """Extract the GROUP BY clause list from a select/query"""
    return selectable._group_by_clauses


def entity_columns(column_descriptions):
    """Yield the mapped entities selected by a query, as described by its
    ``column_descriptions``. Only whole entities are yielded, not attributes
    or expressions."""
    for desc_ in column_descriptions:
        entity = desc_.get("entity")
        if entity is not None and desc_.get("expr") is entity:
            yield entity


def is_single_entity(column_descriptions):
    """Whether a query selects exactly one mapped entity (and so returns
    instances rather than rows)."""
    return (
        len(column_descriptions) == 1
        and len(list(entity_columns(column_descriptions))) == 1
    )


def column_element(x):
    """The SQL element under an ORM attribute or a label."""
    if hasattr(x, "__clause_element__"):
        x = x.__clause_element__()
    if isinstance(x, Label):
        x = x.element
    return x


def same_column(a, b):
    """Whether `a` and `b` refer to the same column of the same table."""
    return column_element(a).compare(column_element(b))


def ob_clauses(order_spec, resolve, backwards=False):
    """Build ORDER BY clauses for an :data:`.types.OrderSpec`.

    :param resolve: A callable returning the SQL expression for a field name.
    """
    fields = [f.reversed for f in order_spec] if backwards else order_spec
    return [
        asc(resolve(f.name)) if f.is_ascending else desc(resolve(f.name))
        for f in fields
    ]


def compile_predicate(predicate, resolve):
    """Turn a :class:`.predicates.Disjunction` into an SQLAlchemy expression
    suitable for use in ``.where()``, ``.having()`` or ``.filter()``.

    :param resolve: A callable returning the SQL expression for a field name.
    """
    return or_(
        *[
            and_(*[c.apply(resolve(c.name)) for c in conjunction.terms])
            for conjunction in predicate.terms
        ]
    )


__all__ = [
    "column_element",
    "compile_predicate",
    "entity_columns",
    "group_by_clauses",
    "is_single_entity",
    "ob_clauses",
    "order_by_clauses",
    "same_column",
]
