"""Shared test fixtures for Haven backend tests."""

import pytest
from datetime import datetime, timezone
from bson import ObjectId

from haven.database import collections, ensure_indexes
from tests.fakes import FakeDatabase, FakeClock


@pytest.fixture
def clock():
    """Fixed at noon UTC so shifting by hours stays on the same day."""
    return FakeClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def fake_db():
    db = FakeDatabase()
    await ensure_indexes(db)
    return db


@pytest.fixture
def add_user(fake_db):
    """Insert a user document and return its id as a string."""
    async def _add_user(first_name="Alex"):
        result = await fake_db[collections.USERS].insert_one({"firstName": first_name})
        return str(result.inserted_id)
    return _add_user


@pytest.fixture
def befriend(fake_db):
    """Create an accepted friendship between two users."""
    async def _befriend(requester_id, recipient_id, status="accepted"):
        await fake_db[collections.FRIENDSHIPS].insert_one({
            "requester": ObjectId(requester_id),
            "recipient": ObjectId(recipient_id),
            "status": status,
        })
    return _befriend
