"""Main paging interface and implementation."""

from __future__ import annotations

import logging
from functools import cached_property
from typing import Any, List, Optional

from sqlalchemy.orm.query import Query

from .cursor import decode_cursor, encode_cursor
from .order import ID_FIELD_DEFAULT, normalize_order
from .predicates import boundary_predicate
from .results import Page
from .sources import QuerySource, SelectSource, SequenceSource, Source
from .types import BACKWARD, DIRECTIONS, FORWARD, Cursor, OrderSpec

logger = logging.getLogger(__name__)

PER_PAGE_DEFAULT = 10


class Paginator:
    """Fetches one page of a :class:`.sources.Source` relative to a cursor.

    Everything is computed lazily on first access and cached on the instance,
    so a paginator runs at most one page query and one count query. Instances
    are meant to be used for a single request, by a single thread.

    :param source: The :class:`.sources.Source` to paginate.
    :param per_page: The (maximum) number of records on the page.
    :param cursor: A cursor string from :attr:`start_cursor` or
        :attr:`end_cursor` of another page of the same query; ``None`` for the
        first page.
    :param direction: ``"forward"`` to get the records after `cursor`,
        ``"backward"`` to get the records before it.
    :param id_field: Name of a field that is unique per record, used to break
        ties in the ordering.
    :raises InvalidOrderError: if the source is ordered by something other
        than plain fields.
    """

    def __init__(
        self,
        source: Source,
        per_page: int = PER_PAGE_DEFAULT,
        cursor: Optional[str] = None,
        direction: str = FORWARD,
        id_field: str = ID_FIELD_DEFAULT,
    ):
        if isinstance(per_page, bool) or not isinstance(per_page, int) or per_page < 1:
            raise ValueError("per_page must be a positive integer")
        if direction not in DIRECTIONS:
            raise ValueError(
                "direction must be one of {}, not {!r}".format(DIRECTIONS, direction)
            )

        self.source = source
        self.per_page = per_page
        self.cursor = cursor
        self.direction = direction
        self.order_spec: OrderSpec = normalize_order(
            source.order_terms(), id_field=id_field
        )

    @property
    def is_forward(self) -> bool:
        """Whether this page was fetched forward from its cursor."""
        return self.direction == FORWARD

    @cached_property
    def decoded_cursor(self) -> Optional[Cursor]:
        if not self.cursor:
            return None
        return decode_cursor(self.cursor, self.order_spec)

    @cached_property
    def paging_source(self) -> Source:
        """The source, ordered and filtered for fetching this page."""
        backwards = not self.is_forward
        source = self.source.apply_order(self.order_spec, backwards=backwards)
        place = self.decoded_cursor
        if place is not None:
            source = source.apply_filter(
                boundary_predicate(self.order_spec, place, backwards=backwards)
            )
        # 1 extra to check if there's a further page
        return source.limit(self.per_page + 1)

    @cached_property
    def records_plus_one(self) -> List[Any]:
        rows = list(self.paging_source.fetch())
        logger.debug(
            "fetched %d row(s) %s, per_page=%d",
            len(rows),
            self.direction,
            self.per_page,
        )
        return rows

    @cached_property
    def records(self) -> List[Any]:
        """The records on this page, in the order of the original query."""
        rows = self.records_plus_one[: self.per_page]
        if not self.is_forward:
            rows.reverse()
        return rows

    @cached_property
    def total(self) -> int:
        """Number of rows in the whole resultset, ignoring the cursor."""
        total = self.source.count()
        logger.debug("counted %d row(s)", total)
        return total

    @property
    def has_previous(self) -> bool:
        """Whether there is a page before this one."""
        if self.is_forward:
            # The cursor was presumably the end cursor of a previous page.
            return bool(self.cursor)
        # If we managed to load one more record than requested, that record
        # will be on the previous page.
        return len(self.records_plus_one) > self.per_page

    @property
    def has_next(self) -> bool:
        """Whether there is a page after this one."""
        if self.is_forward:
            return len(self.records_plus_one) > self.per_page
        # The cursor was presumably the start cursor of a following page.
        return True

    def cursor_for(self, record) -> str:
        """The cursor string for a record of this page."""
        return encode_cursor(
            record, self.order_spec, getter=self.paging_source.value_of
        )

    @property
    def start_cursor(self) -> Optional[str]:
        """Cursor of the first record on this page."""
        if not self.records:
            return None
        return self.cursor_for(self.records[0])

    @property
    def end_cursor(self) -> Optional[str]:
        """Cursor of the last record on this page."""
        if not self.records:
            return None
        return self.cursor_for(self.records[-1])

    def page(self) -> Page:
        """A :class:`.results.Page` snapshot of this paginator."""
        return Page(
            records=list(self.records),
            has_next=self.has_next,
            has_previous=self.has_previous,
            start_cursor=self.start_cursor,
            end_cursor=self.end_cursor,
            total=self.total,
        )


def paginate(
    source: Source,
    per_page: int = PER_PAGE_DEFAULT,
    cursor: Optional[str] = None,
    direction: str = FORWARD,
    id_field: str = ID_FIELD_DEFAULT,
    order=None,
) -> Page:
    """Get a :class:`.results.Page` of any :class:`.sources.Source`, or of a
    plain sequence of records.

    :param order: Ordering terms for a plain sequence (see
        :func:`.order.normalize_order`). Without them the records are ordered
        by `id_field` alone. Sources carry their own ordering, so passing
        `order` along with a :class:`.sources.Source` is an error.
    """
    if not isinstance(source, Source):
        source = SequenceSource(source, order=order)
    elif order is not None:
        raise ValueError("order can only be given for a plain sequence")
    return Paginator(source, per_page, cursor, direction, id_field).page()


def get_page(
    query: Query,
    per_page: int = PER_PAGE_DEFAULT,
    cursor: Optional[str] = None,
    direction: str = FORWARD,
    id_field: str = ID_FIELD_DEFAULT,
) -> Page:
    """Get a page of results for a legacy ORM query.

    :param query: The source query.
    :type query: :class:`sqlalchemy.orm.query.Query`.
    :param per_page: The (maximum) number of rows on the page.
    :param cursor: A cursor string from a previous page, or ``None`` for the
        first page.
    :param direction: ``"forward"`` or ``"backward"`` from the cursor.
    :param id_field: Name of the field used to break ties in the ordering.

    :returns: A :class:`.results.Page` containing the requested rows and
        cursors to access surrounding pages.
    """
    return paginate(QuerySource(query), per_page, cursor, direction, id_field)


def select_page(
    s,
    selectable,
    per_page: int = PER_PAGE_DEFAULT,
    cursor: Optional[str] = None,
    direction: str = FORWARD,
    id_field: str = ID_FIELD_DEFAULT,
) -> Page:
    """Get a page of results from a SQLAlchemy Core (or new-style ORM)
    selectable.

    :param s: :class:`sqlalchemy.engine.Connection` or
        :class:`sqlalchemy.orm.session.Session` to use to execute the query.
    :param selectable: The source selectable.
    :param per_page: The (maximum) number of rows on the page.
    :param cursor: A cursor string from a previous page, or ``None`` for the
        first page.
    :param direction: ``"forward"`` or ``"backward"`` from the cursor.
    :param id_field: Name of the field used to break ties in the ordering.

    :returns: A :class:`.results.Page` containing the requested rows and
        cursors to access surrounding pages.
    """
    return paginate(SelectSource(s, selectable), per_page, cursor, direction, id_field)


__all__ = [
    "BACKWARD",
    "FORWARD",
    "PER_PAGE_DEFAULT",
    "Paginator",
    "get_page",
    "paginate",
    "select_page",
]
