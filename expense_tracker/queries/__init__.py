"""Summary queries package."""

from expense_tracker.queries.aggregator import ExpenseAggregator, period_window

__all__ = ["ExpenseAggregator", "period_window"]
