from datetime import datetime, timedelta
from functools import partial

import arrow
import pytest
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table, insert
from sqlalchemy.orm import column_property, declarative_base, relationship
from sqlbag import S as _S
from sqlbag import temporary_database

from sqlacursor import custom_cursor_type

S = partial(_S, future=True)

Base = declarative_base()

ECHO = False

POST_COUNT = 6
BOOK_COUNT = 30
WIDGET_COUNT = 25

EPOCH = datetime(2020, 1, 1, 9, 30)

custom_cursor_type(arrow.Arrow, "da", deserializer=arrow.get)


class Post(Base):
    __tablename__ = "post"
    id = Column(Integer, primary_key=True)
    display_index = Column(Integer, nullable=False)


class Author(Base):
    __tablename__ = "author"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)


class Book(Base):
    __tablename__ = "t_Book"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    b = Column(Integer, nullable=False)
    c = Column(Integer, nullable=False)
    published_at = Column(DateTime, nullable=False)
    note = Column(String(255))
    author_id = Column(Integer, ForeignKey("author.id"), nullable=False)
    author = relationship("Author", backref="books")

    popularity = column_property(b + c)


Widget = Table(
    "widget",
    Base.metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
)


def _populate(s):
    s.add_all([Post(display_index=i) for i in range(POST_COUNT)])

    authors = [Author(name="Author {}".format(x)) for x in range(4)]
    s.add_all(authors)
    s.add_all(
        [
            Book(
                name="Book {}".format(x % 11),
                b=x % 3,
                c=x % 5,
                published_at=EPOCH + timedelta(hours=x % 7, microseconds=x % 2),
                author=authors[x % 4],
            )
            for x in range(BOOK_COUNT)
        ]
    )
    s.flush()
    s.execute(
        insert(Widget).values(
            [dict(name="widget {}".format(i % 4)) for i in range(WIDGET_COUNT)]
        )
    )


@pytest.fixture(params=["sqlite"])
def dburl(request):
    with temporary_database(request.param) as dburl:
        with S(dburl) as s:
            Base.metadata.create_all(s.connection())
            _populate(s)
        yield dburl
