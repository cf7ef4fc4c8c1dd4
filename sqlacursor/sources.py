"""Data sources that can be paginated: SQLAlchemy selects and queries, and
in-memory sequences.

Sources are generative: every method that changes the source returns a new
one, leaving the original untouched."""
from __future__ import annotations

from copy import copy
from functools import cached_property
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import column, func, select
from sqlalchemy.orm import Session

from .cursor import get_value
from .order import InvalidOrderError, order_column, order_field_for, qualified_name
from .predicates import Disjunction
from .serial import PaginationError
from .sqla import (
    compile_predicate,
    entity_columns,
    group_by_clauses,
    is_single_entity,
    ob_clauses,
    order_by_clauses,
    same_column,
)
from .types import OrderField, OrderSpec


class Source:
    """The interface a :class:`.paging.Paginator` needs from the thing it is
    paginating."""

    def order_terms(self) -> List[Any]:
        """The ordering currently applied to this source, as a list of terms
        accepted by :func:`.order.normalize_order`."""
        raise NotImplementedError  # pragma: no cover

    def apply_order(self, order_spec: OrderSpec, backwards: bool = False) -> Source:
        """Replace the ordering of this source with `order_spec`, or its
        reverse if `backwards`."""
        raise NotImplementedError  # pragma: no cover

    def apply_filter(self, predicate: Disjunction) -> Source:
        """Restrict this source to the rows satisfying `predicate`."""
        raise NotImplementedError  # pragma: no cover

    def limit(self, n: int) -> Source:
        raise NotImplementedError  # pragma: no cover

    def fetch(self) -> list:
        raise NotImplementedError  # pragma: no cover

    def count(self) -> int:
        """Number of rows in this source, ignoring ordering and limits."""
        raise NotImplementedError  # pragma: no cover

    def value_of(self, record, name):
        return get_value(record, name)


class _SQLASource(Source):
    """Shared field lookup for the SQLAlchemy-backed sources.

    An order column that can't be read off the selected columns or entities
    under its own name (a column of a joined table, or a label that isn't
    selected) becomes an *extra column*. It is named by its label, or by its
    table and key (``author__name``) when its plain name is taken, and is
    added to the select for paging. For selects returning ORM entities, the
    extra values are split off the rows again and kept for :meth:`value_of`.
    """

    statement: Any
    extra_names: Tuple[str, ...] = ()

    def __init__(self, statement):
        self.statement = statement
        self.single_entity = is_single_entity(statement.column_descriptions)
        self.extra_values: Dict[int, Dict[str, Any]] = {}

    def _with(self, statement) -> _SQLASource:
        c = copy(self)
        c.statement = statement
        return c

    @property
    def column_descriptions(self):
        return self.statement.column_descriptions

    @property
    def returns_entities(self) -> bool:
        """Whether fetched records are ORM entities rather than rows."""
        return self.single_entity

    def _find_selected(self, name):
        for desc_ in self.column_descriptions:
            if desc_.get("name") == name and desc_.get("expr") is not desc_.get(
                "entity"
            ):
                return desc_["expr"]

        for entity in entity_columns(self.column_descriptions):
            attr = getattr(entity, name, None)
            if attr is not None and hasattr(attr, "__clause_element__"):
                return attr

        return None

    def _find_in_froms(self, name):
        return None

    def _lookup(self, name):
        found = self._find_selected(name)
        if found is None:
            found = self._find_in_froms(name)
        return found

    def _refers_to(self, name, col):
        found = self._lookup(name)
        return found is not None and same_column(found, col)

    @cached_property
    def _ordering(self):
        terms = []
        extra_columns = {}
        for clause in order_by_clauses(self.statement):
            found = order_column(clause)
            if found is None or self._refers_to(*found):
                terms.append(clause)
                continue

            name, col = found
            if self._lookup(name) is not None:
                name = qualified_name(col)
                if self._lookup(name) is not None and not self._refers_to(name, col):
                    raise InvalidOrderError(
                        "order column {} clashes with the selected column {}; "
                        "order by a label instead".format(col, name)
                    )
            extra_columns[name] = col
            terms += [OrderField(name, f.direction) for f in order_field_for(clause)]
        return terms, extra_columns

    @property
    def extra_columns(self) -> Dict[str, Any]:
        return self._ordering[1]

    def resolve(self, name):
        """Return the SQL expression for the field `name`."""
        found = self.extra_columns.get(name)
        if found is None:
            found = self._lookup(name)
        if found is None:
            found = column(name)
        return found

    def order_terms(self):
        return list(self._ordering[0])

    def apply_order(self, order_spec, backwards=False):
        statement = self.statement.order_by(None).order_by(
            *ob_clauses(order_spec, self.resolve, backwards)
        )
        # Order fields have to come back with every row so cursors can be
        # built from them.
        extra_names = tuple(
            f.name
            for f in order_spec
            if f.name in self.extra_columns or self._find_selected(f.name) is None
        )
        statement = statement.add_columns(
            *[self.resolve(name).label(name) for name in extra_names]
        )
        c = self._with(statement)
        c.extra_names = extra_names
        return c

    def apply_filter(self, predicate):
        condition = compile_predicate(predicate, self.resolve)
        # For aggregate queries, paging condition is applied *after*
        # aggregation. In SQL this means we need to use HAVING instead of
        # WHERE.
        groupby = group_by_clauses(self.statement)
        if groupby is not None and len(groupby) > 0:
            return self._with(self.statement.having(condition))
        return self._with(self._where(condition))

    def _where(self, condition):
        return self.statement.where(condition)

    def limit(self, n):
        return self._with(self.statement.limit(n))

    def _split_extra(self, rows):
        """Turn ``(entity, *extra values)`` rows back into entities.

        An entity that shows up in several rows keeps the values of the last
        one, which is the one its cursor continues from."""
        self.extra_values = {}
        records = []
        for row in rows:
            entity = row[0]
            self.extra_values[id(entity)] = {
                name: row._mapping[name] for name in self.extra_names
            }
            records.append(entity)
        return records

    def value_of(self, record, name):
        extra = self.extra_values.get(id(record))
        if extra is not None and name in extra:
            return extra[name]

        try:
            return get_value(record, name)
        except (KeyError, AttributeError):
            if getattr(record, "_mapping", None) is None:
                raise
        # A row of several entities: take the value off the first entity
        # that has it.
        for item in record:
            if hasattr(item, "__mapper__") and hasattr(item, name):
                return getattr(item, name)
        raise KeyError(name)


class SelectSource(_SQLASource):
    """A SQLAlchemy Core (or new-style ORM) selectable, executed through a
    :class:`sqlalchemy.orm.Session` or :class:`sqlalchemy.engine.Connection`.
    """

    def __init__(self, bind, selectable):
        super().__init__(selectable)
        self.bind = bind

    @property
    def returns_entities(self):
        return self.single_entity and isinstance(self.bind, Session)

    def _find_in_froms(self, name):
        selected = self.statement.selected_columns
        if name in selected:
            return selected[name]

        get_final_froms = getattr(self.statement, "get_final_froms", None)
        froms = get_final_froms() if get_final_froms else self.statement.froms
        for from_ in froms:
            c = getattr(from_, "c", None)
            if c is not None and name in c:
                return c[name]
        return None

    def fetch(self):
        result = self.bind.execute(self.statement)
        if not self.returns_entities:
            return result.fetchall()
        if self.extra_names:
            return self._split_extra(result.fetchall())
        return result.scalars().all()

    def count(self):
        counted = select(func.count()).select_from(
            self.statement.order_by(None).subquery()
        )
        return self.bind.execute(counted).scalar_one()


class QuerySource(_SQLASource):
    """A legacy SQLAlchemy ORM :class:`sqlalchemy.orm.query.Query`."""

    def _where(self, condition):
        return self.statement.filter(condition)

    def fetch(self):
        rows = self.statement.all()
        if self.returns_entities and self.extra_names:
            return self._split_extra(rows)
        return rows

    def count(self):
        return self.statement.order_by(None).count()


class SequenceSource(Source):
    """An in-memory sequence of records (mappings or objects), sorted and
    filtered in Python.

    Every record needs a value other than ``None`` for every ordering field,
    as Python can't compare ``None`` with other values. Fetching raises
    :class:`.serial.PaginationError` otherwise.
    """

    def __init__(self, items, order=None, getter=get_value):
        self.items = list(items)
        self.order = order
        self.getter = getter
        self.order_spec: Optional[OrderSpec] = None
        self.backwards = False
        self.predicate: Optional[Disjunction] = None
        self.max_rows: Optional[int] = None

    def order_terms(self):
        if self.order_spec is not None:
            return list(self.order_spec)
        return self.order

    def apply_order(self, order_spec, backwards=False):
        c = copy(self)
        c.order_spec = order_spec
        c.backwards = backwards
        return c

    def apply_filter(self, predicate):
        c = copy(self)
        c.predicate = predicate
        return c

    def limit(self, n):
        c = copy(self)
        c.max_rows = n
        return c

    def value_of(self, record, name):
        return self.getter(record, name)

    def _check_values(self, rows):
        for r in rows:
            for f in self.order_spec:
                if self.value_of(r, f.name) is None:
                    raise PaginationError(
                        "Record {!r} has no value for order field {!r}; "
                        "ordering by fields with nulls is not supported".format(
                            r, f.name
                        )
                    )

    def fetch(self):
        rows = list(self.items)
        if self.order_spec is not None:
            self._check_values(rows)
        if self.predicate is not None:
            rows = [
                r
                for r in rows
                if self.predicate.evaluate(lambda name, r=r: self.value_of(r, name))
            ]
        if self.order_spec is not None:
            fields = self.order_spec
            if self.backwards:
                fields = tuple(f.reversed for f in fields)
            # Stable sorts, least significant field first.
            for f in reversed(fields):
                rows.sort(
                    key=lambda r, name=f.name: self.value_of(r, name),
                    reverse=not f.is_ascending,
                )
        if self.max_rows is not None:
            rows = rows[: self.max_rows]
        return rows

    def count(self):
        return len(self.items)
