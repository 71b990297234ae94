"""
Pytest configuration and shared fixtures.

Every test gets a fresh in-memory SQLite database with the
entities from tests/support.py.
"""

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from repository.models import Base
from tests.support import Comment, Post, Tag, User, UserRepository


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = Session(engine)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def users(session):
    """
    Seed data:

    ada  36 active    posts: Engines (published, 2 comments, tag python), Notes
    bob  17 active    no posts
    cy   25 inactive  posts: Travel (published, 1 comment)
    dee  70 active    no posts
    """
    python = Tag(name="python")
    ada = User(name="ada", age=36, status="active", created_at=datetime(2024, 1, 15, 10, 30))
    bob = User(name="bob", age=17, status="active")
    cy = User(name="cy", age=25, status="inactive")
    dee = User(name="dee", age=70, status="active")

    engines = Post(title="Engines", published=True, author=ada, tags=[python])
    engines.comments = [Comment(body="first"), Comment(body="second")]
    notes = Post(title="Notes", published=False, author=ada)
    travel = Post(title="Travel", published=True, author=cy)
    travel.comments = [Comment(body="nice")]

    session.add_all([ada, bob, cy, dee, engines, notes, travel])
    session.flush()
    return {"ada": ada, "bob": bob, "cy": cy, "dee": dee}


@pytest.fixture
def repo(session, users):
    return UserRepository(session)
