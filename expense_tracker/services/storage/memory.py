"""
In-Memory Storage Implementation

Same contract as the SQLite store, kept in a dict. Used as the injected
fake in tests and for quick local experiments; nothing survives a restart.
"""

from datetime import datetime
from typing import Optional

from expense_tracker.models.expense import (
    DEFAULT_CATEGORY,
    DEFAULT_MERCHANT,
    CaptureSource,
    ExpenseRecord,
    ParsedExpenseCandidate,
)
from expense_tracker.services.storage.interface import (
    Clock,
    DuplicateError,
    ExpenseStorageInterface,
    NotInitializedError,
    generate_expense_id,
)


class InMemoryExpenseStore(ExpenseStorageInterface):
    """Dict-backed expense store."""

    def __init__(self, clock: Clock = datetime.now):
        self._clock = clock
        self._data: Optional[dict[str, ExpenseRecord]] = None

    async def init(self) -> None:
        if self._data is None:
            self._data = {}

    def _records(self) -> dict[str, ExpenseRecord]:
        if self._data is None:
            raise NotInitializedError("Expense store used before init()")
        return self._data

    async def add(
        self,
        candidate: ParsedExpenseCandidate,
        date: Optional[datetime] = None,
        source: Optional[CaptureSource] = None,
    ) -> ExpenseRecord:
        records = self._records()
        now = self._clock()
        record = ExpenseRecord(
            id=generate_expense_id(),
            amount=candidate.amount,
            merchant=candidate.merchant or DEFAULT_MERCHANT,
            category=candidate.category or DEFAULT_CATEGORY,
            description=candidate.description or "",
            date=date or now,
            created_at=now,
            source=source,
        )
        if record.id in records:
            raise DuplicateError(f"Expense ID already exists: {record.id}")
        records[record.id] = record
        return record.model_copy()

    async def get_all(self) -> list[ExpenseRecord]:
        return [record.model_copy() for record in self._records().values()]

    async def delete(self, expense_id: str) -> bool:
        return self._records().pop(expense_id, None) is not None
