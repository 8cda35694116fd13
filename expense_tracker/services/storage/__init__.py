"""
Storage Services Package

Provides the abstract expense storage interface and its implementations.
SQLite is the durable backend; the in-memory store backs tests.
"""

from expense_tracker.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotInitializedError,
    StorageError,
    generate_expense_id,
)
from expense_tracker.services.storage.memory import InMemoryExpenseStore
from expense_tracker.services.storage.sqlite_store import (
    SCHEMA_VERSION,
    SQLiteExpenseStore,
)

__all__ = [
    # Interface
    "ExpenseStorageInterface",
    "generate_expense_id",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotInitializedError",
    "StorageError",
    # Implementations
    "InMemoryExpenseStore",
    "SCHEMA_VERSION",
    "SQLiteExpenseStore",
]
