#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Run:
  pip install -e . "fastapi[standard]"
  python examples/blog_app.py

Then try:
  http://127.0.0.1:8000/docs
  http://127.0.0.1:8000/api/posts?populate=author,comments.author
  http://127.0.0.1:8000/api/posts?title=ne-draft&sort=-id&fields=title,author&populate=author
  http://127.0.0.1:8000/api/users/1
"""

from typing import List, Optional

from fastapi import FastAPI, Request
from sqlalchemy import ForeignKey, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker

import uvicorn

from craftrest import CraftAPI, ResourceRegistry, SQLAlchemyAccessor, ValidationError, load_craft_config, log


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(200), default="")
    password: Mapped[Optional[str]] = mapped_column(String(200))
    posts: Mapped[List["Post"]] = relationship(back_populates="author")


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    author: Mapped[Optional[User]] = relationship(back_populates="posts")
    comments: Mapped[List["Comment"]] = relationship(back_populates="post")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    body: Mapped[str] = mapped_column(String(1000))
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"))
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    post: Mapped[Post] = relationship(back_populates="comments")
    author: Mapped[Optional[User]] = relationship()


def require_api_key(request: Request) -> None:
    if request.headers.get("x-api-key") != "secret":
        raise ValidationError("Missing or invalid x-api-key header")


def strip_title(request: Request, body):
    if isinstance(body, dict) and isinstance(body.get("title"), str):
        return dict(body, title=body["title"].strip())
    return None


async def log_deleted(deleted) -> None:
    log.info(f"Deleted {deleted}")


def create_app() -> FastAPI:
    engine = create_engine("sqlite:///./blog_app.db")
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    # Create tables + seed
    Base.metadata.create_all(engine)
    with Session() as session:
        if session.query(User).count() == 0:
            alice = User(name="alice", email="alice@x.org", password="hunter2")
            post = Post(title="hello", author=alice)
            session.add_all([alice, post, Comment(body="first!", post=post, author=alice)])
            session.commit()

    registry = ResourceRegistry()
    registry.register(
        "User",
        SQLAlchemyAccessor(User, Session),
        {"hide": {"getAll": ["password"], "create": ["password"]}, "isSafe": True},
    )
    registry.register(
        "Post",
        SQLAlchemyAccessor(Post, Session),
        {
            "populate": ["author"],
            "hide": {"getAll": ["password"]},
            "hooks": {"beforeCreate": strip_title, "afterDelete": log_deleted},
            "middlewares": {"remove": [require_api_key], "update": [require_api_key]},
        },
    )
    registry.register("Comment", SQLAlchemyAccessor(Comment, Session), {"excluded": ["update", "remove"]})

    app = FastAPI(title="craftrest blog")
    # craft.yml in the working directory, if any, can add options or ignore resources
    CraftAPI(app, registry, config=load_craft_config())
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
