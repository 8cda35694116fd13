"""Tests for the two-stage candidate validator."""

from decimal import Decimal

import pytest

from expense_tracker.models.expense import ParsedExpenseCandidate
from expense_tracker.services.storage import StorageError
from expense_tracker.validation import ExpenseValidator


def _full(amount="5.25", merchant="Starbucks", category="food"):
    return ParsedExpenseCandidate(
        amount=Decimal(amount),
        merchant=merchant,
        category=category,
        description="Coffee",
    )


class FailingStore:
    """Store whose reads always fail."""

    def __init__(self, error=None):
        self.error = error or StorageError("disk gone")

    async def get_by_date_range(self, start, end):
        raise self.error


class TestSchemaStage:
    """Tests for stage 1."""

    @pytest.mark.parametrize("amount", ["0", "-1", "-0.01"])
    async def test_non_positive_amount_is_error(self, amount):
        validator = ExpenseValidator(max_amount=10000)

        result = await validator.validate(_full(amount=amount))

        assert result.is_valid is False
        assert result.schema_valid is False
        assert result.semantic_valid is False
        assert result.has_errors
        assert result.issues[0].field == "amount"

    async def test_clean_candidate_passes(self):
        validator = ExpenseValidator(max_amount=10000)

        result = await validator.validate(_full())

        assert result.is_valid is True
        assert result.issues == []
        assert result.warnings == []

    async def test_missing_fields_are_info_only(self):
        """Test defaults will apply, so missing fields do not block."""
        validator = ExpenseValidator(max_amount=10000)

        result = await validator.validate(ParsedExpenseCandidate(amount=Decimal("3")))

        assert result.is_valid is True
        assert {i.field for i in result.issues} == {"merchant", "category", "description"}
        assert all(i.severity == "info" for i in result.issues)
        assert result.warnings == []

    async def test_unconventional_category_is_warning(self):
        validator = ExpenseValidator(max_amount=10000)

        result = await validator.validate(_full(category="groceries"))

        assert result.is_valid is True
        assert len(result.warnings) == 1
        assert "groceries" in result.warnings[0]

    async def test_category_check_ignores_case(self):
        validator = ExpenseValidator(max_amount=10000)

        result = await validator.validate(_full(category="Food"))

        assert result.warnings == []


class TestSemanticStage:
    """Tests for stage 2."""

    async def test_amount_above_ceiling_is_warning(self):
        validator = ExpenseValidator(max_amount=100)

        result = await validator.validate(_full(amount="150"))

        assert result.is_valid is True
        assert result.issues[0].issue_type == "suspicious_value"
        assert result.issues[0].severity == "warning"

    async def test_duplicate_today_is_warning(self, memory_store, clock):
        """Test same amount and merchant stored today is flagged."""
        await memory_store.add(_full(), date=clock.now)
        validator = ExpenseValidator(memory_store, max_amount=10000, clock=clock)

        result = await validator.validate(_full(merchant="starbucks"))

        assert result.is_valid is True
        assert [i.issue_type for i in result.issues] == ["potential_duplicate"]

    async def test_no_duplicate_check_without_store(self):
        validator = ExpenseValidator(max_amount=10000)

        result = await validator.validate(_full(), check_duplicates=True)

        assert result.issues == []

    async def test_different_amount_is_not_duplicate(self, memory_store, clock):
        await memory_store.add(_full(amount="4.00"), date=clock.now)
        validator = ExpenseValidator(memory_store, max_amount=10000, clock=clock)

        result = await validator.validate(_full())

        assert result.issues == []

    async def test_storage_failure_skips_duplicate_check(self, clock):
        """Test lookup failures never fail validation."""
        validator = ExpenseValidator(FailingStore(), max_amount=10000, clock=clock)

        result = await validator.validate(_full())

        assert result.is_valid is True
        assert result.issues == []

    async def test_programming_errors_in_duplicate_check_surface(self, clock):
        """Test only storage errors are skipped."""
        validator = ExpenseValidator(
            FailingStore(TypeError("bad call")), max_amount=10000, clock=clock,
        )

        with pytest.raises(TypeError):
            await validator.validate(_full())

    async def test_semantic_stage_skipped_when_schema_fails(self):
        validator = ExpenseValidator(max_amount=1)

        result = await validator.validate(_full(amount="-500"))

        assert [i.issue_type for i in result.issues] == ["invalid_value"]


class TestUserFriendlySummary:
    """Tests for the message shown next to the confirm button."""

    async def test_all_clear(self):
        validator = ExpenseValidator(max_amount=10000)
        result = await validator.validate(_full())

        assert validator.get_user_friendly_summary(result).startswith("All checks passed")

    async def test_errors_are_listed(self):
        validator = ExpenseValidator(max_amount=10000)
        result = await validator.validate(_full(amount="0"))

        summary = validator.get_user_friendly_summary(result)

        assert "can't be saved" in summary
        assert "Amount must be greater than zero" in summary
