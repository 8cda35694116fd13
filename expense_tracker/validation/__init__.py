"""Validation package."""

from expense_tracker.validation.validator import CONVENTIONAL_CATEGORIES, ExpenseValidator

__all__ = [
    "CONVENTIONAL_CATEGORIES",
    "ExpenseValidator",
]
