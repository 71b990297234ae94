"""
Entities, criteria and repositories shared by the test suite.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repository import BaseRepository, Criterion, Resource
from repository.models import Base, TimestampMixin


# =============================================================
# ENTITIES
# =============================================================

post_tags = Table(
    "post_tags",
    Base.metadata,
    Column("post_id", ForeignKey("posts.id"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id"), primary_key=True),
)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    age: Mapped[int] = mapped_column(default=0)

    posts: Mapped[List["Post"]] = relationship(back_populates="author")

    def __repr__(self) -> str:
        return f"User({self.name!r})"


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(100))
    published: Mapped[bool] = mapped_column(default=False)
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))

    author: Mapped[Optional[User]] = relationship(back_populates="posts")
    comments: Mapped[List["Comment"]] = relationship(back_populates="post")
    tags: Mapped[List["Tag"]] = relationship(secondary=post_tags)


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    body: Mapped[str] = mapped_column(String(200))
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"))

    post: Mapped[Post] = relationship(back_populates="comments")


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(30))


class NotAnEntity:
    """Plain class, not mapped."""


# =============================================================
# CRITERIA
# =============================================================


class ActiveUsers(Criterion):
    def apply(self, handle, repository):
        return handle.where("status", "active")


class AdultUsers(Criterion):
    def apply(self, handle, repository):
        return handle.where("age", 18, ">=")


class DuckCriterion:
    """Has apply() without subclassing Criterion."""

    def apply(self, handle, repository):
        return handle.order_by("name")


class NoApply:
    pass


# =============================================================
# REPOSITORIES AND RESOURCES
# =============================================================


class UserRepository(BaseRepository):
    model_name = User


class PostRepository(BaseRepository):
    model_name = Post


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    age: int


class UserResource(Resource):
    schema = UserOut


def names(entities):
    return sorted(entity.name for entity in entities)
