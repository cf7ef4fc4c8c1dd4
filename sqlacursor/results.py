"""Paging data structures."""
from __future__ import annotations

from typing import Any, List, NamedTuple, Optional


class Page(NamedTuple):
    """A page of records along with the cursors and flags needed to fetch the
    surrounding pages.

    ``records`` are always in the order of the original query, whichever way
    the page was fetched."""

    records: List[Any]
    has_next: bool
    """Whether there are more rows after this page (in the original query
    order)."""
    has_previous: bool
    """Whether there are more rows before this page (in the original query
    order)."""
    start_cursor: Optional[str]
    """Cursor of the first record on the page; ``None`` if the page is
    empty."""
    end_cursor: Optional[str]
    """Cursor of the last record on the page; ``None`` if the page is
    empty."""
    total: int
    """Number of rows in the whole resultset, regardless of the cursor."""

    def one(self):
        """Assuming paging was called with ``per_page=1``, return the single
        record on this page."""
        c = len(self.records)

        if c < 1:
            raise RuntimeError("tried to select one but zero rows returned")
        elif c > 1:
            raise RuntimeError("too many rows returned")
        else:
            return self.records[0]
