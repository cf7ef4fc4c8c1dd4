"""Integration tests that page through real SQLite databases, with both
new-style selects and legacy ORM queries."""
import base64
import json

import pytest
from sqlalchemy import case, desc, func, literal_column, select, text
from sqlalchemy.orm import Session, aliased

from sqlacursor import (
    BACKWARD,
    FORWARD,
    InvalidCursorError,
    InvalidOrderError,
    Paginator,
    QuerySource,
    SelectSource,
    get_page,
    select_page,
)
from sqlacursor.sqla import is_single_entity
from conftest import (
    BOOK_COUNT,
    ECHO,
    POST_COUNT,
    WIDGET_COUNT,
    Author,
    Book,
    Post,
    S,
    Widget,
)


def check_paging(get, unpaged, key=lambda r: r):
    """Page forwards through the whole resultset for a range of page sizes,
    then back again from the last page, checking every row turns up exactly
    once and in order."""
    expected = [key(r) for r in unpaged]

    for per_page in range(1, 8):
        gathered = []
        cursor = None

        while True:
            page = get(per_page=per_page, cursor=cursor)
            assert page.total == len(unpaged)
            assert page.has_previous == (cursor is not None)
            gathered += [key(r) for r in page.records]

            if not page.has_next:
                break
            assert len(page.records) == per_page
            cursor = page.end_cursor

        assert gathered == expected

        back = [key(r) for r in page.records]
        cursor = page.start_cursor

        while cursor is not None:
            page = get(per_page=per_page, cursor=cursor, direction=BACKWARD)
            assert page.has_next
            assert page.total == len(unpaged)
            back = [key(r) for r in page.records] + back

            if not page.has_previous:
                break
            assert len(page.records) == per_page
            cursor = page.start_cursor

        assert back == expected


def check_select(
    s, selectable, tiebreak=None, unpaged=None, key=lambda r: r, **kwargs
):
    if unpaged is None:
        q = selectable if tiebreak is None else selectable.order_by(tiebreak)
        result = s.execute(q)
        if isinstance(s, Session) and is_single_entity(q.column_descriptions):
            unpaged = result.scalars().all()
        else:
            unpaged = result.fetchall()

    def get(**args):
        return select_page(s, selectable, **args, **kwargs)

    check_paging(get, unpaged, key=key)


def check_query(q, tiebreak=None, key=lambda r: r, **kwargs):
    unpaged = (q if tiebreak is None else q.order_by(tiebreak)).all()

    def get(**args):
        return get_page(q, **args, **kwargs)

    check_paging(get, unpaged, key=key)


def decoded(cursor):
    return json.loads(base64.b64decode(cursor))


def test_bidirectional(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Post).order_by(Post.display_index.desc())

        next_cursor = None
        prev_cursor = None
        for i in range(POST_COUNT // 2):
            page = select_page(s, q, per_page=2, cursor=next_cursor)
            assert page.total == POST_COUNT
            records = page.records
            assert [p.display_index for p in records] == [
                POST_COUNT - (i * 2) - 1,
                POST_COUNT - (i * 2) - 2,
            ]
            next_cursor = page.end_cursor
            prev_cursor = page.start_cursor
            assert decoded(next_cursor) == [
                {"display_index": records[-1].display_index},
                {"id": records[-1].id},
            ]
            assert decoded(prev_cursor) == [
                {"display_index": records[0].display_index},
                {"id": records[0].id},
            ]
            assert page.has_next == (i != (POST_COUNT // 2) - 1)
            assert page.has_previous == (i != 0)

        next_cursor = prev_cursor
        for i in reversed(range((POST_COUNT // 2) - 1)):
            paginator = Paginator(
                SelectSource(s, q), per_page=2, cursor=next_cursor, direction=BACKWARD
            )
            assert not paginator.is_forward
            page = paginator.page()
            assert page.total == POST_COUNT
            records = page.records
            assert [p.display_index for p in records] == [
                POST_COUNT - (i * 2) - 1,
                POST_COUNT - (i * 2) - 2,
            ]
            next_cursor = page.start_cursor
            assert decoded(next_cursor) == [
                {"display_index": records[0].display_index},
                {"id": records[0].id},
            ]
            assert decoded(page.end_cursor) == [
                {"display_index": records[-1].display_index},
                {"id": records[-1].id},
            ]
            # Backwards pages always claim to have a next page.
            assert page.has_next
            assert page.has_previous == (i != 0)


def test_first_page_and_next(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Post).order_by(desc(Post.display_index))
        page = select_page(s, q, per_page=2)
        assert [p.display_index for p in page.records] == [5, 4]
        last = page.records[-1]
        assert decoded(page.end_cursor) == [{"display_index": 4}, {"id": last.id}]

        page = select_page(s, q, per_page=2, cursor=page.end_cursor)
        assert [p.display_index for p in page.records] == [3, 2]


def test_symmetry(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book).order_by(Book.b, desc(Book.c))
        for per_page in (3, 4, 7):
            first = select_page(s, q, per_page=per_page)
            second = select_page(s, q, per_page=per_page, cursor=first.end_cursor)
            back = select_page(
                s, q, per_page=per_page, cursor=second.start_cursor, direction=BACKWARD
            )
            assert back.records == first.records
            assert not back.has_previous


def test_total_is_invariant(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book).where(Book.b == 1).order_by(Book.name)
        expected = s.execute(select(func.count()).where(Book.b == 1)).scalar_one()
        cursor = None
        while True:
            page = select_page(s, q, per_page=3, cursor=cursor)
            assert page.total == expected
            if not page.has_next:
                break
            cursor = page.end_cursor


def test_paginator_caches_results(dburl):
    with S(dburl, echo=ECHO) as s:
        paginator = Paginator(SelectSource(s, select(Post)), per_page=4)
        records = paginator.records
        assert paginator.records is records
        assert paginator.total == POST_COUNT
        s.add(Post(display_index=99))
        s.flush()
        assert paginator.records is records
        assert paginator.total == POST_COUNT


def test_new_orm_entity(dburl):
    with S(dburl, echo=ECHO) as s:
        check_select(s, select(Post).order_by(desc(Post.display_index)))
        check_select(s, select(Book).order_by(Book.b, desc(Book.c)), Book.id)
        check_select(s, select(Book).order_by(Book.published_at), Book.id)
        check_select(s, select(Book).order_by(Book.name.desc(), Book.id.desc()))


def test_new_orm_unordered(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Author)
        unpaged = s.execute(q.order_by(Author.id)).scalars().all()
        check_select(s, q, unpaged=unpaged)


def test_new_orm_columns(dburl):
    with S(dburl, echo=ECHO) as s:
        check_select(
            s, select(Book.id, Book.name, Book.b).order_by(Book.b, Book.name), Book.id
        )


def test_new_orm_multiple_entities(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book, Author).join(Book.author).order_by(desc(Book.c), Book.id)
        check_select(s, q)


def test_new_orm_joined_order_column(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book).join(Book.author).order_by(Author.name.desc())
        books = sorted(s.execute(select(Book)).scalars(), key=lambda b: b.id)
        expected = sorted(books, key=lambda b: b.author.name, reverse=True)

        page = select_page(s, q, per_page=BOOK_COUNT)
        assert page.records == expected
        last = page.records[-1]
        assert decoded(page.end_cursor) == [
            {"author__name": last.author.name},
            {"id": last.id},
        ]

        check_select(s, q, Book.id)
        check_select(s, select(Book).join(Book.author).order_by(Author.id), Book.id)
        check_query(s.query(Book).join(Book.author).order_by(Author.name), Book.id)


def test_new_orm_joined_order_label(dburl):
    with S(dburl, echo=ECHO) as s:
        author = aliased(Author)
        q = (
            select(Book)
            .join(author, Book.author)
            .order_by(author.name.label("author_name").desc())
        )
        check_select(s, q, Book.id)
        assert list(decoded(select_page(s, q).end_cursor)[0]) == ["author_name"]

        with pytest.raises(InvalidOrderError):
            select_page(s, select(Book).join(author, Book.author).order_by(author.name))


def test_new_orm_multiple_entities_joined_order(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book, Author).join(Book.author).order_by(Author.name, Book.name)
        check_select(s, q, Book.id, key=lambda r: (r.Book.id, r.Author.id))


def test_new_orm_unselected_order_column(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book.name).order_by(Book.c, Book.b)
        ordered = q.order_by(None).order_by(Book.c, Book.b, Book.id)
        unpaged = s.execute(ordered).fetchall()
        check_select(s, q, unpaged=unpaged, key=lambda r: r.name)


def test_new_orm_textual_order(dburl):
    with S(dburl, echo=ECHO) as s:
        unpaged = (
            s.execute(select(Post).order_by(desc(Post.display_index), Post.id))
            .scalars()
            .all()
        )
        for order in [text("display_index desc"), desc("display_index")]:
            check_select(s, select(Post).order_by(order), unpaged=unpaged)


def test_new_orm_filtered(dburl):
    with S(dburl, echo=ECHO) as s:
        q = (
            select(Book)
            .join(Book.author)
            .where(Author.name.in_(["Author 1", "Author 2"]))
            .order_by(Book.c, Book.name)
        )
        check_select(s, q, Book.id)


def test_core(dburl):
    with S(dburl, echo=ECHO) as s:
        check_select(s, select(Widget).order_by(Widget.c.name), Widget.c.id)
        check_select(s, select(Widget).order_by(desc(Widget.c.name), desc(Widget.c.id)))

    # Check again with a connection instead of session.
    with S(dburl, echo=ECHO) as s:
        check_select(
            s.connection(), select(Widget).order_by(Widget.c.name), Widget.c.id
        )


def test_core_unselected_order_column(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Widget.c.name).order_by(Widget.c.id.desc())
        unpaged = s.execute(q).fetchall()
        assert len(unpaged) == WIDGET_COUNT
        check_select(s, q, unpaged=unpaged, key=lambda r: r.name)


def test_core_aggregated(dburl):
    with S(dburl, echo=ECHO) as s:
        q = (
            select(Book.author_id, func.count().label("n"))
            .group_by(Book.author_id)
            .order_by(Book.author_id)
        )
        check_select(s, q, id_field="author_id")


def test_orm_query(dburl):
    with S(dburl, echo=ECHO) as s:
        check_query(s.query(Post).order_by(desc(Post.display_index)))
        check_query(s.query(Book).order_by(Book.b, Book.c.desc()), Book.id)
        check_query(s.query(Book.id, Book.name).order_by(Book.name), Book.id)
        q = s.query(Book, Author).join(Book.author).order_by(Book.name, Book.id)
        check_query(q)


def test_orm_query_string_order(dburl):
    with S(dburl, echo=ECHO) as s:
        q = s.query(Post).order_by("display_index desc")
        page = get_page(q, per_page=4)
        assert [p.display_index for p in page.records] == [5, 4, 3, 2]
        page = get_page(q, per_page=4, cursor=page.end_cursor)
        assert [p.display_index for p in page.records] == [1, 0]
        assert not page.has_next


def test_sources_agree(dburl):
    with S(dburl, echo=ECHO) as s:
        a = select_page(s, select(Book).order_by(Book.c, Book.name), per_page=5)
        b = get_page(s.query(Book).order_by(Book.c, Book.name), per_page=5)
        assert a == b


def test_tie_break(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Book).order_by(Book.b)
        seen = []
        cursor = None
        while True:
            page = select_page(s, q, per_page=4, cursor=cursor)
            seen += [book.id for book in page.records]
            if not page.has_next:
                break
            cursor = page.end_cursor
        assert len(seen) == len(set(seen)) == BOOK_COUNT
        books = {book.id: book for book in s.execute(select(Book)).scalars()}
        assert [(books[i].b, i) for i in seen] == sorted((books[i].b, i) for i in seen)


def test_invalid_cursor(dburl):
    with S(dburl, echo=ECHO) as s:
        q = select(Post).order_by(desc(Post.display_index))
        paginator = Paginator(SelectSource(s, q), per_page=2, cursor="invalid")
        with pytest.raises(InvalidCursorError):
            paginator.records

        other = select_page(s, select(Post).order_by(Post.id), per_page=2)
        with pytest.raises(InvalidCursorError):
            select_page(s, q, per_page=2, cursor=other.end_cursor)

        with pytest.raises(InvalidCursorError):
            cursor = select_page(s, q).end_cursor
            get_page(s.query(Post).order_by(Post.id), cursor=cursor)


@pytest.mark.parametrize(
    "order",
    [
        lambda: func.abs(Post.display_index),
        lambda: case((Post.display_index == 1, 2), else_=1),
        lambda: text("abs(display_index)"),
        lambda: text("case display_index when 1 then 2 else 1 end"),
        lambda: literal_column("abs(display_index)"),
        lambda: (Post.display_index + 1).label("shifted"),
    ],
)
def test_invalid_order(dburl, order):
    with S(dburl, echo=ECHO) as s:
        q = select(Post).order_by(order())
        with pytest.raises(InvalidOrderError):
            select_page(s, q, per_page=2)
        with pytest.raises(InvalidOrderError):
            Paginator(QuerySource(s.query(Post).order_by(order())))


def test_bad_arguments(dburl):
    with S(dburl, echo=ECHO) as s:
        source = SelectSource(s, select(Post))
        with pytest.raises(ValueError):
            Paginator(source, per_page=0)
        with pytest.raises(ValueError):
            Paginator(source, direction="sideways")
        assert Paginator(source, direction=FORWARD).is_forward


def test_warn_when_sorting_by_nullable(dburl):
    with S(dburl, echo=ECHO) as s:
        with pytest.warns(UserWarning):
            select_page(s, select(Book).order_by(Book.note))
