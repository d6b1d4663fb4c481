"""
Shared fixtures.

Every test gets its own in-memory MongoDB database from mongomock-motor, so
the suite needs no running server.
"""

import uuid

import pytest
from mongomock_motor import AsyncMongoMockClient

from collection_accessor.accessor import create_model
from tests.models import USERS, Account, Event, Member, Profile, User


@pytest.fixture
def db():
    """Fresh, empty database."""
    client = AsyncMongoMockClient()
    return client[f"test_{uuid.uuid4().hex}"]


@pytest.fixture
async def users(db):
    return await create_model("User", User, db)


@pytest.fixture
async def seeded_users(users):
    """User accessor preloaded with Joe, Bob, Jane, Martin and Jack."""
    await users.insert_many(USERS)
    return users


@pytest.fixture
async def accounts(db):
    return await create_model("Account", Account, db)


@pytest.fixture
async def members(db):
    return await create_model("Member", Member, db)


@pytest.fixture
async def profiles(db):
    return await create_model("Profile", Profile, db)


@pytest.fixture
async def events(db):
    return await create_model("Event", Event, db)
