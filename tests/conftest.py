"""Pytest configuration and shared fixtures."""

import os
import random

import pytest
import pytest_asyncio

# keep the module-level database objects off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from core.database import Database
from core.service import VocabularyService
from tests.utils import T0, make_item


@pytest.fixture
def now():
    return T0


@pytest.fixture
def four_items():
    return [
        make_item(1, "apple", "яблоко"),
        make_item(2, "house", "дом"),
        make_item(3, "cat", "кошка"),
        make_item(4, "water", "вода"),
    ]


@pytest_asyncio.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'vocab.db'}")
    await database.init()
    yield database
    await database.close()


@pytest.fixture
def service(database):
    return VocabularyService(database, rng=random.Random(7), due_limit=10)


@pytest_asyncio.fixture
async def shared_databases(tmp_path):
    """Two storage layers on one sqlite file, as the bot and the API run."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'shared.db'}"
    first, second = Database(url), Database(url)
    await first.init()
    yield first, second
    await first.close()
    await second.close()
