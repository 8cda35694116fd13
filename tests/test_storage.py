"""Tests for the expense stores (SQLite and in-memory)."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, inspect

from expense_tracker.models.expense import CaptureSource, ParsedExpenseCandidate
from expense_tracker.services.storage import (
    SCHEMA_VERSION,
    ConnectionError,
    InMemoryExpenseStore,
    NotInitializedError,
    SQLiteExpenseStore,
    StorageError,
)


def _candidate(amount="5.25", merchant="Starbucks", category="food", description="Coffee"):
    return ParsedExpenseCandidate(
        amount=Decimal(amount),
        merchant=merchant,
        category=category,
        description=description,
    )


class TestSQLiteExpenseStore:
    """Tests for the durable SQLite store."""

    async def test_add_then_get_all_round_trip(self, sqlite_store, clock):
        """Test a stored expense reads back with equal fields plus generated ones."""
        record = await sqlite_store.add(_candidate(), source=CaptureSource.TEXT)

        expenses = await sqlite_store.get_all()

        assert len(expenses) == 1
        stored = expenses[0]
        assert stored.id == record.id
        assert stored.amount == Decimal("5.25")
        assert stored.merchant == "Starbucks"
        assert stored.category == "food"
        assert stored.description == "Coffee"
        assert stored.source == CaptureSource.TEXT
        assert isinstance(stored.date, datetime)
        assert isinstance(stored.created_at, datetime)
        assert stored.created_at == clock.now
        assert stored.date == clock.now

    async def test_add_applies_defaults_for_missing_fields(self, sqlite_store):
        """Test missing merchant/category/description get their defaults."""
        record = await sqlite_store.add(ParsedExpenseCandidate(amount=Decimal("3")))
        assert record.merchant == "Unknown"
        assert record.category == "other"
        assert record.description == ""

    async def test_decimal_amount_round_trips_exactly(self, sqlite_store):
        """Test amounts are not distorted by float storage."""
        await sqlite_store.add(_candidate(amount="0.10"))
        await sqlite_store.add(_candidate(amount="0.20"))

        expenses = await sqlite_store.get_all()

        assert sum(e.amount for e in expenses) == Decimal("0.30")

    async def test_store_does_not_validate_amounts(self, sqlite_store):
        """Test storage accepts a zero amount; confirmation is what refuses it."""
        record = await sqlite_store.add(_candidate(amount="0"))
        assert record.amount == Decimal("0")

    async def test_same_millisecond_adds_get_distinct_ids(self, sqlite_store, monkeypatch):
        """Test two adds in the same millisecond both persist with different IDs."""
        monkeypatch.setattr(
            "expense_tracker.services.storage.interface.time.time_ns",
            lambda: 1718200000000000000,
        )

        first = await sqlite_store.add(_candidate())
        second = await sqlite_store.add(_candidate())

        assert first.id != second.id
        assert first.id.startswith("1718200000000")
        assert len(await sqlite_store.get_all()) == 2

    async def test_get_by_date_range_is_inclusive(self, sqlite_store):
        """Test records exactly on both bounds are included."""
        start = datetime(2024, 6, 1, 0, 0, 0)
        end = datetime(2024, 6, 30, 23, 59, 59)
        await sqlite_store.add(_candidate(description="on start"), date=start)
        await sqlite_store.add(_candidate(description="on end"), date=end)
        await sqlite_store.add(_candidate(description="before"), date=start - timedelta(seconds=1))
        await sqlite_store.add(_candidate(description="after"), date=end + timedelta(seconds=1))

        found = await sqlite_store.get_by_date_range(start, end)

        assert sorted(e.description for e in found) == ["on end", "on start"]

    async def test_delete(self, sqlite_store):
        """Test delete removes the record and unknown IDs are a no-op."""
        record = await sqlite_store.add(_candidate())

        assert await sqlite_store.delete(record.id) is True
        assert await sqlite_store.delete(record.id) is False
        assert await sqlite_store.get_all() == []

    async def test_init_is_idempotent(self, db_path, clock):
        """Test init twice (and reopening) keeps data and schema intact."""
        store = SQLiteExpenseStore(path=db_path, clock=clock)
        await store.init()
        await store.add(_candidate())
        await store.init()
        await store.close()

        reopened = SQLiteExpenseStore(path=db_path, clock=clock)
        await reopened.init()
        await reopened.init()

        assert len(await reopened.get_all()) == 1
        await reopened.close()

        engine = create_engine(f"sqlite:///{db_path}")
        with engine.connect() as conn:
            index_names = {index["name"] for index in inspect(conn).get_indexes("expenses")}
            version = conn.exec_driver_sql("PRAGMA user_version").scalar()
        engine.dispose()

        assert index_names == {"ix_expenses_date", "ix_expenses_category"}
        assert version == SCHEMA_VERSION

    async def test_upgrades_version_one_database(self, db_path, clock):
        """Test a database written before the source column keeps its records."""
        legacy = SQLiteExpenseStore(path=db_path, clock=clock)
        await legacy.init()
        await legacy.close()
        engine = create_engine(f"sqlite:///{db_path}")
        with engine.begin() as conn:
            # Rebuild the table the way version 1 laid it out
            conn.exec_driver_sql("DROP TABLE expenses")
            conn.exec_driver_sql(
                "CREATE TABLE expenses ("
                "id VARCHAR PRIMARY KEY, amount VARCHAR(32) NOT NULL, "
                "merchant VARCHAR(200) NOT NULL, category VARCHAR(50) NOT NULL, "
                "description TEXT NOT NULL, date DATETIME NOT NULL, "
                "created_at DATETIME NOT NULL)"
            )
            conn.exec_driver_sql(
                "INSERT INTO expenses VALUES ('1', '4.50', 'Cafe', 'food', "
                "'Tea', '2024-06-10 08:00:00.000000', '2024-06-10 08:00:00.000000')"
            )
            conn.exec_driver_sql("PRAGMA user_version = 1")
        engine.dispose()

        store = SQLiteExpenseStore(path=db_path, clock=clock)
        await store.init()
        expenses = await store.get_all()
        await store.close()

        assert len(expenses) == 1
        assert expenses[0].amount == Decimal("4.50")
        assert expenses[0].date == datetime(2024, 6, 10, 8, 0)
        assert expenses[0].source is None

    async def test_use_before_init_raises(self, db_path):
        """Test there is no hidden lazy initialization."""
        store = SQLiteExpenseStore(path=db_path)
        with pytest.raises(NotInitializedError):
            await store.add(_candidate())
        with pytest.raises(StorageError):
            await store.get_all()

    async def test_unavailable_location_raises_connection_error(self, tmp_path):
        """Test a path whose parent cannot be created surfaces a StorageError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        store = SQLiteExpenseStore(path=str(blocker / "sub" / "expenses.db"))

        with pytest.raises(ConnectionError):
            await store.init()

    async def test_in_memory_sqlite(self, clock):
        """Test ':memory:' keeps data across sessions of the same store."""
        store = SQLiteExpenseStore(path=":memory:", clock=clock)
        await store.init()
        await store.add(_candidate())
        assert len(await store.get_all()) == 1
        await store.close()


class TestInMemoryExpenseStore:
    """Tests for the dict-backed store used as a fake."""

    async def test_round_trip(self, memory_store):
        """Test add then get_all."""
        record = await memory_store.add(_candidate())
        assert await memory_store.get_all() == [record]

    async def test_returned_records_are_copies(self, memory_store):
        """Test callers cannot mutate stored records."""
        record = await memory_store.add(_candidate())
        record.merchant = "Changed"
        assert (await memory_store.get_all())[0].merchant == "Starbucks"

    async def test_use_before_init_raises(self):
        """Test the in-memory store also requires init()."""
        with pytest.raises(NotInitializedError):
            await InMemoryExpenseStore().get_all()

    async def test_delete_unknown_is_noop(self, memory_store):
        """Test deleting an unknown ID returns False."""
        assert await memory_store.delete("missing") is False
