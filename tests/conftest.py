"""Test configuration and fixtures for Photo Vault.

This module provides isolated test environments:
- Temporary SQLite database per test (aiosqlite)
- Seeded users and photos
- Log files in a temporary directory
"""
import os
import tempfile
from typing import Dict

import pytest
import pytest_asyncio

# Set test environment BEFORE importing photovault modules
_TEST_ROOT = tempfile.mkdtemp(prefix="photovault-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/app.db"
os.environ["LOG_DIR"] = os.path.join(_TEST_ROOT, "logs")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-photo-vault"
os.environ["FRONTEND_URL"] = "https://photos.example.com"
os.environ["ENVIRONMENT"] = "DEV"

from photovault.database import Base, build_engine, build_session_maker  # noqa: E402
from photovault.models import Photo, User  # noqa: E402
from photovault.services.access import Principal  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database with the full schema for a single test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def db(session_maker):
    """Session for one test; tests commit where a request would."""
    async with session_maker() as session:
        yield session
        await session.rollback()


async def seed_directory(session) -> Dict:
    """Register three users and give alice and bob two photos each."""
    alice = User(email="alice@example.com", username="alice")
    bob = User(email="Bob@Example.com", username="bob")
    carol = User(email="carol@example.com", username="carol")
    session.add_all([alice, bob, carol])
    await session.flush()

    photos = {
        "alice_1": Photo(owner_id=alice.id, storage_key="alice/1.jpg"),
        "alice_2": Photo(owner_id=alice.id, storage_key="alice/2.jpg"),
        "alice_3": Photo(owner_id=alice.id, storage_key="alice/3.jpg"),
        "bob_1": Photo(owner_id=bob.id, storage_key="bob/1.jpg"),
    }
    session.add_all(photos.values())
    await session.commit()

    return {
        "alice": Principal(user_id=alice.id, email=alice.email),
        "bob": Principal(user_id=bob.id, email=bob.email),
        "carol": Principal(user_id=carol.id, email=carol.email),
        "photos": {name: photo.id for name, photo in photos.items()},
    }


@pytest_asyncio.fixture
async def directory(db) -> Dict:
    return await seed_directory(db)
