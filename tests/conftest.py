"""
Shared fixtures.

Every test gets a fresh app bound to an in-memory SQLite database with the
default meal windows seeded.
"""

import pytest

from config import TestConfig
from fitchain import create_app, db
from fitchain.models.user import User
from fitchain.services.groups import create_group, join_group


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Push an app context for tests that call services directly."""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(ctx):
    def _make(username, **fields):
        user = User(username=username, **fields)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_group(ctx):
    """make_group(creator, *members, max_members=10) -> Group"""

    def _make(creator, *members, max_members=10, name="Lunch Club"):
        group = create_group(name, creator.id, max_members=max_members)
        for member in members:
            join_group(group.id, member.id)
        return group

    return _make
