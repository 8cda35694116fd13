"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep a local SQLite file as the durable store
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations expense capture and summaries need.

IMPORTANT: Storage does NOT validate amounts. Whatever is handed to
``add`` is stored; the confirmation boundary is responsible for
refusing non-positive amounts.
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from expense_tracker.models.expense import (
    CaptureSource,
    ExpenseRecord,
    ParsedExpenseCandidate,
)


Clock = Callable[[], datetime]


def generate_expense_id() -> str:
    """
    Build a new expense ID: millisecond timestamp plus a random suffix.

    The suffix keeps IDs unique when several expenses are added within
    the same millisecond (e.g. confirming every line of a receipt).
    """
    return f"{time.time_ns() // 1_000_000}{uuid4().hex[:9]}"


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Any storage implementation must implement these methods.
    ``init`` must be awaited before any other call.
    """

    @abstractmethod
    async def init(self) -> None:
        """
        Prepare the store (schema, indexes).

        Idempotent: calling it again on an initialized store is a no-op
        and never loses data.

        Raises:
            StorageError: If the underlying medium is unavailable
        """
        pass

    @abstractmethod
    async def add(
        self,
        candidate: ParsedExpenseCandidate,
        date: Optional[datetime] = None,
        source: Optional[CaptureSource] = None,
    ) -> ExpenseRecord:
        """
        Store a new expense.

        Args:
            candidate: The expense fields to store
            date: When the expense happened (defaults to now)
            source: Capture mode that produced the expense

        Returns:
            The stored record with its generated ``id`` and ``created_at``

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_all(self) -> list[ExpenseRecord]:
        """
        Return every stored expense.

        Timestamps are returned as ``datetime`` values.
        """
        pass

    async def get_by_date_range(
        self,
        start: datetime,
        end: datetime,
    ) -> list[ExpenseRecord]:
        """
        Return expenses whose ``date`` is within [start, end], both inclusive.

        Implemented as a scan over ``get_all()``; personal expense volumes
        don't need an index seek. Results are unsorted; ordering is the
        caller's concern.
        """
        expenses = await self.get_all()
        return [e for e in expenses if start <= e.date <= end]

    @abstractmethod
    async def delete(self, expense_id: str) -> bool:
        """
        Delete an expense by ID.

        Returns:
            True if a record was removed, False if the ID was unknown
            (not an error)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotInitializedError(StorageError):
    """Store used before ``init()`` was awaited."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not open the storage backend."""
    pass
