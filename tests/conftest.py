from typing import Any, Dict, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from craftrest import DataAccessor, SQLAlchemyAccessor, create_crud_router, install_exception_handlers


class Base(DeclarativeBase):
    pass


class Dummy(Base):
    __tablename__ = "dummies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, default="")
    price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    secret: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, default="")
    password: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    posts: Mapped[List["Post"]] = relationship(back_populates="author", order_by="Post.id")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String, default="")
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("authors.id"), nullable=True)
    author: Mapped[Optional[Author]] = relationship(back_populates="posts")
    comments: Mapped[List["Comment"]] = relationship(back_populates="post", order_by="Comment.id")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    body: Mapped[str] = mapped_column(String, default="")
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"))
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("authors.id"), nullable=True)
    post: Mapped[Post] = relationship(back_populates="comments")
    author: Mapped[Optional[Author]] = relationship()


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield sessionmaker(engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def dummies(session_factory):
    """The 100 / 200 / 300 price fixture"""
    with session_factory() as session:
        session.add_all(
            [
                Dummy(id=1, name="cheap", price=100, secret="s1", category="tools"),
                Dummy(id=2, name="average", price=200, secret="s2", category="electronics"),
                Dummy(id=3, name="expensive", price=300, secret="s3", category="tools"),
            ]
        )
        session.commit()
    return SQLAlchemyAccessor(Dummy, session_factory)


@pytest.fixture
def blog(session_factory):
    with session_factory() as session:
        alice = Author(id=1, name="alice", password="pw-alice")
        bob = Author(id=2, name="bob", password="pw-bob")
        first = Post(id=1, title="first", author=alice)
        second = Post(id=2, title="second", author=alice)
        orphan = Post(id=3, title="orphan")
        session.add_all([alice, bob, first, second, orphan])
        session.add_all(
            [
                Comment(id=1, body="nice", post=first, author=bob),
                Comment(id=2, body="thanks", post=first, author=alice),
            ]
        )
        session.commit()
    return {
        "authors": SQLAlchemyAccessor(Author, session_factory),
        "posts": SQLAlchemyAccessor(Post, session_factory),
    }


def make_client(accessor: DataAccessor, options: Any = None, prefix: str = "/dummies") -> TestClient:
    app = FastAPI()
    install_exception_handlers(app)
    app.include_router(create_crud_router(accessor, options, prefix=prefix))
    return TestClient(app)


class FakeAccessor(DataAccessor):
    """
    In memory accessor that records its calls,
    `fail` maps a method name to the exception it raises
    """

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, fail: Optional[Dict[str, Exception]] = None) -> None:
        self.records = [dict(record) for record in records or []]
        self.fail = fail or {}
        self.calls: List[tuple] = []

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name,) + args)
        if name in self.fail:
            raise self.fail[name]

    def called(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    @property
    def field_names(self):
        return ["id", "name", "password"]

    def _by_id(self, object_id):
        return next((record for record in self.records if str(record["id"]) == str(object_id)), None)

    async def find(self, filters, projection, skip, limit, populate, sort=None):
        self._call("find", filters, projection, skip, limit, populate, sort)
        return [dict(record) for record in self.records[skip : skip + limit]]

    async def get_by_id(self, object_id, projection, populate):
        self._call("get_by_id", object_id, projection, populate)
        record = self._by_id(object_id)
        return dict(record) if record else None

    async def count(self, filters):
        self._call("count", filters)
        return len(self.records)

    async def create(self, data):
        self._call("create", data)
        record = dict(data, id=len(self.records) + 1)
        self.records.append(record)
        return dict(record)

    async def create_many(self, items):
        self._call("create_many", items)
        return [await self.create(item) for item in items]

    async def update_by_id(self, object_id, update):
        self._call("update_by_id", object_id, update)
        record = self._by_id(object_id)
        if record is None:
            return None
        record.update(update)
        return dict(record)

    async def bulk_update(self, pairs):
        self._call("bulk_update", pairs)
        return {"matched_count": len(pairs), "modified_count": len(pairs)}

    async def delete_by_id(self, object_id):
        self._call("delete_by_id", object_id)
        record = self._by_id(object_id)
        if record is None:
            return None
        self.records.remove(record)
        return record

    async def bulk_delete(self, filters):
        self._call("bulk_delete", filters)
        return {"deleted_count": len(filters)}


@pytest.fixture
def fake_accessor():
    return FakeAccessor(
        [
            {"id": 1, "name": "alice", "password": "pw1"},
            {"id": 2, "name": "bob", "password": "pw2"},
        ]
    )
