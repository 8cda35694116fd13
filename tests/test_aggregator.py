"""Tests for period windows and summaries."""

from datetime import datetime
from decimal import Decimal

import pytest

from expense_tracker.models.expense import ParsedExpenseCandidate, SummaryPeriod
from expense_tracker.queries import ExpenseAggregator, period_window


class TestPeriodWindow:
    """Tests for the deterministic window calculation."""

    def test_today(self):
        now = datetime(2024, 6, 12, 14, 30, 15, 123456)
        assert period_window(SummaryPeriod.TODAY, now) == (
            datetime(2024, 6, 12, 0, 0, 0),
            datetime(2024, 6, 12, 23, 59, 59),
        )

    def test_week_starts_on_sunday(self):
        """Test a Wednesday belongs to the Sunday-to-Saturday week."""
        assert period_window(SummaryPeriod.WEEK, datetime(2024, 6, 12, 9, 0)) == (
            datetime(2024, 6, 9, 0, 0, 0),
            datetime(2024, 6, 15, 23, 59, 59),
        )

    def test_week_on_sunday_is_its_own_start(self):
        start, end = period_window(SummaryPeriod.WEEK, datetime(2024, 6, 9, 8, 0))
        assert start == datetime(2024, 6, 9, 0, 0, 0)
        assert end == datetime(2024, 6, 15, 23, 59, 59)

    def test_week_on_saturday(self):
        start, _ = period_window(SummaryPeriod.WEEK, datetime(2024, 6, 15, 23, 0))
        assert start == datetime(2024, 6, 9, 0, 0, 0)

    def test_week_across_month_boundary(self):
        """Test a week that starts in the previous month."""
        start, end = period_window(SummaryPeriod.WEEK, datetime(2024, 8, 1, 12, 0))
        assert start == datetime(2024, 7, 28, 0, 0, 0)
        assert end == datetime(2024, 8, 3, 23, 59, 59)

    @pytest.mark.parametrize("now, last_day", [
        (datetime(2024, 2, 10), datetime(2024, 2, 29, 23, 59, 59)),
        (datetime(2023, 2, 10), datetime(2023, 2, 28, 23, 59, 59)),
        (datetime(2024, 12, 31, 23, 0), datetime(2024, 12, 31, 23, 59, 59)),
    ])
    def test_month_runs_to_last_day(self, now, last_day):
        start, end = period_window(SummaryPeriod.MONTH, now)
        assert start == datetime(now.year, now.month, 1)
        assert end == last_day

    def test_accepts_string_period(self):
        """Test plain strings are accepted where a SummaryPeriod is expected."""
        now = datetime(2024, 6, 12)
        assert period_window("today", now) == period_window(SummaryPeriod.TODAY, now)


class TestExpenseAggregator:
    """Tests for summaries over the store."""

    async def _add(self, store, amount, when, description=""):
        return await store.add(
            ParsedExpenseCandidate(amount=Decimal(amount), description=description),
            date=when,
        )

    async def test_empty_store_gives_zero(self, memory_store, clock):
        """Test an empty window is total 0, count 0."""
        aggregator = ExpenseAggregator(memory_store, clock=clock)

        for period in SummaryPeriod:
            summary = await aggregator.summarize(period)
            assert summary.total == Decimal("0")
            assert summary.count == 0
            assert summary.period == period

    async def test_windows_total_and_count(self, memory_store, clock):
        """Test each period counts only its own window (now is Wed 12 June 2024)."""
        await self._add(memory_store, "5.25", datetime(2024, 6, 12, 8, 0))
        await self._add(memory_store, "10.00", datetime(2024, 6, 12, 23, 59, 59))
        await self._add(memory_store, "3.00", datetime(2024, 6, 9, 0, 0))
        await self._add(memory_store, "20.00", datetime(2024, 6, 1, 0, 0))
        await self._add(memory_store, "99.00", datetime(2024, 5, 31, 23, 59, 59))
        await self._add(memory_store, "7.00", datetime(2024, 6, 16, 0, 0))
        aggregator = ExpenseAggregator(memory_store, clock=clock)

        today = await aggregator.today()
        week = await aggregator.week()
        month = await aggregator.month()

        assert (today.total, today.count) == (Decimal("15.25"), 2)
        assert (week.total, week.count) == (Decimal("18.25"), 3)
        assert (month.total, month.count) == (Decimal("45.25"), 5)

    async def test_summarize_all(self, memory_store, clock):
        """Test the three summaries come back together."""
        await self._add(memory_store, "4.00", clock.now)
        aggregator = ExpenseAggregator(memory_store, clock=clock)

        summaries = await aggregator.summarize_all()

        assert set(summaries) == set(SummaryPeriod)
        assert all(s.count == 1 for s in summaries.values())

    async def test_summaries_are_not_cached(self, memory_store, clock):
        """Test a new record shows up in the next summary."""
        aggregator = ExpenseAggregator(memory_store, clock=clock)
        assert (await aggregator.today()).count == 0

        await self._add(memory_store, "1.00", clock.now)

        assert (await aggregator.today()).count == 1

    async def test_list_expenses_newest_first(self, memory_store, clock):
        """Test listings are sorted by date, newest first."""
        await self._add(memory_store, "1", datetime(2024, 6, 10, 9, 0), "older")
        await self._add(memory_store, "2", datetime(2024, 6, 12, 9, 0), "newest")
        await self._add(memory_store, "3", datetime(2024, 6, 11, 9, 0), "middle")
        await self._add(memory_store, "4", datetime(2024, 5, 1, 9, 0), "last month")
        aggregator = ExpenseAggregator(memory_store, clock=clock)

        this_week = await aggregator.list_expenses(SummaryPeriod.WEEK)
        everything = await aggregator.list_expenses()

        assert [e.description for e in this_week] == ["newest", "middle", "older"]
        assert [e.description for e in everything] == ["newest", "middle", "older", "last month"]
