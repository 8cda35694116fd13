"""
Shared pytest fixtures.

No test talks to Gemini: services get a FakeGeminiModel that returns a
canned answer (or raises). Storage is the in-memory store unless a test
needs SQLite, in which case it uses a temporary file.
"""

from datetime import datetime
from typing import Any, Optional

import pytest

from expense_tracker.services.storage import InMemoryExpenseStore, SQLiteExpenseStore


# Wednesday; its week runs Sunday 9 June to Saturday 15 June
FIXED_NOW = datetime(2024, 6, 12, 14, 30, 0)


class FakeResponse:
    def __init__(self, text: str):
        self.text = text


class FakeGeminiModel:
    """Stands in for google.generativeai.GenerativeModel."""

    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: list[Any] = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.text)


class FakeClock:
    """Callable clock that tests can move."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def memory_store(clock):
    store = InMemoryExpenseStore(clock=clock)
    await store.init()
    return store


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "data" / "expenses.db")


@pytest.fixture
async def sqlite_store(db_path, clock):
    store = SQLiteExpenseStore(path=db_path, clock=clock)
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def make_model():
    """Factory for FakeGeminiModel: make_model(text=...) or make_model(error=...)."""
    return FakeGeminiModel
