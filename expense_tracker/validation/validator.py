"""
Two-Stage Candidate Validation

DESIGN DECISION: Validation happens in two distinct stages at the
confirmation boundary, just before a candidate becomes a record:

STAGE 1 - SCHEMA VALIDATION:
- Amount must be positive (the only blocking rule)
- Missing merchant / category / description (defaults will apply)
- Category outside the conventional set

STAGE 2 - SEMANTIC VALIDATION:
- Unusually high amounts
- Possible duplicates (same amount and merchant already stored today)

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the caller decides whether to store.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from expense_tracker.config import get_settings
from expense_tracker.models.expense import (
    DEFAULT_MERCHANT,
    ExpenseCategory,
    ParsedExpenseCandidate,
    SummaryPeriod,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.queries.aggregator import period_window
from expense_tracker.services.storage import ExpenseStorageInterface, StorageError
from expense_tracker.services.storage.interface import Clock


logger = structlog.get_logger(__name__)

CONVENTIONAL_CATEGORIES = frozenset(category.value for category in ExpenseCategory)


class ExpenseValidator:
    """
    Validates expense candidates through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (storage used for duplicate checks)
    """

    def __init__(
        self,
        store: Optional[ExpenseStorageInterface] = None,
        max_amount: Optional[float] = None,
        clock: Clock = datetime.now,
    ):
        """
        Initialize validator.

        Args:
            store: Storage used for duplicate checking.
                   If None, duplicate checking is skipped.
            max_amount: Amount above which a warning is raised
                        (defaults to ``MAX_EXPENSE_AMOUNT``).
            clock: Source of "now" for the duplicate window.
        """
        self._store = store
        if max_amount is None:
            max_amount = get_settings().app.max_expense_amount
        self._max_amount = Decimal(str(max_amount))
        self._clock = clock

    def _validate_schema(
        self,
        candidate: ParsedExpenseCandidate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if candidate.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the amount you spent",
            ))

        if not candidate.merchant:
            issues.append(ValidationIssue(
                field="merchant",
                issue_type="missing",
                message="No merchant recognized; it will be saved as 'Unknown'",
                severity="info",
            ))

        if not candidate.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="No category recognized; it will be saved as 'other'",
                severity="info",
            ))
        elif candidate.category.lower() not in CONVENTIONAL_CATEGORIES:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unconventional_value",
                message=f"Category '{candidate.category}' is not a standard category",
                severity="warning",
                suggested_fix=f"Use one of: {', '.join(sorted(CONVENTIONAL_CATEGORIES))}",
            ))

        if not candidate.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="No description; the original input will be used",
                severity="info",
            ))

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        candidate: ParsedExpenseCandidate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if candidate.amount > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (${candidate.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    async def _check_duplicates(
        self,
        candidate: ParsedExpenseCandidate,
    ) -> list[ValidationIssue]:
        """
        Look for an expense stored today with the same amount and merchant.

        This requires storage access.
        """
        issues = []

        if self._store is None:
            return issues

        merchant = (candidate.merchant or DEFAULT_MERCHANT).lower()
        start, end = period_window(SummaryPeriod.TODAY, self._clock())

        try:
            todays = await self._store.get_by_date_range(start, end)
        except StorageError as e:
            # Don't fail validation due to storage errors
            logger.warning("duplicate_check_skipped", error=str(e))
            return issues

        if any(
            expense.amount == candidate.amount and expense.merchant.lower() == merchant
            for expense in todays
        ):
            issues.append(ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message=(
                    f"An expense of ${candidate.amount:,.2f} at "
                    f"{candidate.merchant or DEFAULT_MERCHANT} was already recorded today"
                ),
                severity="warning",
                suggested_fix="Please verify this isn't a duplicate entry",
            ))

        return issues

    async def validate(
        self,
        candidate: ParsedExpenseCandidate,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            candidate: The candidate the user is confirming
            check_duplicates: Whether to check for duplicates (requires storage)

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(candidate)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(candidate)
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(candidate))

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the confirm button.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed. Please review the details below."

        lines = []

        if result.has_errors:
            lines.append("This expense can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     Tip: {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
