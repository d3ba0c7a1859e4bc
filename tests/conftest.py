"""
Shared fixtures. Environment is set before any hospital_agent import so the
module-level config picks it up.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017/")
os.environ.setdefault("MONGO_DB_NAME", "hospital-booking-agent-test")
os.environ.setdefault("DOMAIN", "agent.example.com")

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId


def make_cursor(documents):
    """Motor-style cursor: chainable sort/skip/limit, awaitable to_list."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(documents))
    return cursor


def make_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.create_index = AsyncMock()
    collection.find = MagicMock(return_value=make_cursor([]))
    collection.aggregate = MagicMock(return_value=make_cursor([]))
    return collection


class FakeDatabase:
    """Attribute or item access hands out one mock collection per name."""

    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = make_collection()
        return self._collections[name]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture
def mock_db_client():
    client = MagicMock()
    client.__getitem__.return_value = FakeDatabase()
    return client


@pytest.fixture
def city_general():
    return {
        "_id": ObjectId(),
        "hospital_name": "City General Hospital",
        "email": "info@citygeneralhospital.com",
        "phone": "+1-555-0101",
        "location": {
            "type": "Point",
            "coordinates": [-71.0589, 42.3601],
            "city": "Boston",
            "state": "MA",
            "zip_code": "02115",
        },
        "specialties": ["Cardiology", "Neurology"],
        "availability": "24/7",
        "rating": 4.5,
        "is_active": True,
    }


@pytest.fixture
def cursor_factory():
    return make_cursor
