"""
Test configuration and fixtures
"""
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import mongomock  # noqa: E402
import pytest  # noqa: E402

import database  # noqa: E402
from auth import WalletSigner  # noqa: E402
from schemas import User, default_username  # noqa: E402


@pytest.fixture()
def mongo(monkeypatch):
    """Swap the module-level database for an in-memory mongomock one."""
    fake_db = mongomock.MongoClient()["rockchain-test"]
    monkeypatch.setattr(database, "db", fake_db)
    database.ensure_indexes()
    return fake_db


@pytest.fixture()
def now():
    return database.utcnow()


@pytest.fixture()
def signer():
    return WalletSigner.create()


@pytest.fixture()
def other_signer():
    return WalletSigner.create()


@pytest.fixture()
def make_user(mongo, now):
    """Insert a user document directly, bypassing the signed upsert."""

    def _make(address=None, points=0, age=timedelta(days=30), **fields):
        address = (address or WalletSigner.create().address).lower()
        user = User(address=address, username=default_username(address), points=points, **fields)
        database.create_document("user", user, now=now - age)
        return database.find_one("user", {"address": address})

    return _make
