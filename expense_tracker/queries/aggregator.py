"""
Expense Summaries

DESIGN DECISION: Summaries are DERIVED, never stored.
Every call runs a fresh range query against the store and totals what
comes back, so a summary can never drift from the records.

Period windows are inclusive at both ends and end at 23:59:59 of their
last day:
- today: local midnight to 23:59:59 of the current date
- week:  Sunday 00:00:00 to the following Saturday 23:59:59
- month: the 1st 00:00:00 to the last day 23:59:59
"""

import calendar
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from expense_tracker.models.expense import ExpenseRecord, ExpenseSummary, SummaryPeriod
from expense_tracker.services.storage.interface import Clock, ExpenseStorageInterface


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=0)


def period_window(period: SummaryPeriod, now: datetime) -> tuple[datetime, datetime]:
    """
    Inclusive (start, end) of the period containing ``now``.

    This is DETERMINISTIC - the same ``now`` always gives the same window.
    """
    period = SummaryPeriod(period)

    if period == SummaryPeriod.TODAY:
        return _start_of_day(now), _end_of_day(now)

    if period == SummaryPeriod.WEEK:
        # weekday() is Monday=0; weeks here start on Sunday
        days_since_sunday = (now.weekday() + 1) % 7
        start = _start_of_day(now - timedelta(days=days_since_sunday))
        return start, _end_of_day(start + timedelta(days=6))

    last_day = calendar.monthrange(now.year, now.month)[1]
    return (
        _start_of_day(now.replace(day=1)),
        _end_of_day(now.replace(day=last_day)),
    )


class ExpenseAggregator:
    """
    Computes period summaries from the expense store.

    GUARANTEES:
    - Only real stored records are counted
    - An empty window is reported as total 0, count 0
    """

    def __init__(
        self,
        store: ExpenseStorageInterface,
        clock: Clock = datetime.now,
    ):
        self._store = store
        self._clock = clock

    async def summarize(self, period: SummaryPeriod) -> ExpenseSummary:
        """Total and count of the expenses in the current ``period``."""
        period = SummaryPeriod(period)
        start, end = period_window(period, self._clock())
        expenses = await self._store.get_by_date_range(start, end)

        return ExpenseSummary(
            total=sum((expense.amount for expense in expenses), Decimal("0")),
            count=len(expenses),
            period=period,
        )

    async def today(self) -> ExpenseSummary:
        return await self.summarize(SummaryPeriod.TODAY)

    async def week(self) -> ExpenseSummary:
        return await self.summarize(SummaryPeriod.WEEK)

    async def month(self) -> ExpenseSummary:
        return await self.summarize(SummaryPeriod.MONTH)

    async def summarize_all(self) -> dict[SummaryPeriod, ExpenseSummary]:
        """Today, this week and this month, each from its own range query."""
        return {period: await self.summarize(period) for period in SummaryPeriod}

    async def list_expenses(
        self,
        period: Optional[SummaryPeriod] = None,
    ) -> list[ExpenseRecord]:
        """
        Records of the current ``period`` (every record when None),
        newest first.
        """
        if period is None:
            expenses = await self._store.get_all()
        else:
            start, end = period_window(SummaryPeriod(period), self._clock())
            expenses = await self._store.get_by_date_range(start, end)

        return sorted(expenses, key=lambda expense: expense.date, reverse=True)
