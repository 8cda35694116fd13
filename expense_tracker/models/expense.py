"""
Core Data Models for Expense Tracker

These models define the schemas for all data flowing through the system:
1. Candidates proposed by extraction (text, voice, receipt)
2. Records persisted after the user confirms
3. Summaries derived from stored records
4. Validation results produced at the confirmation boundary

DESIGN DECISION: Candidates are deliberately loose (optional fields, any
amount) because they mirror what a model proposed. Receipt candidates keep
missing fields absent so the user sees what was actually recognized;
defaults are resolved again at confirmation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, PlainSerializer


DEFAULT_MERCHANT = "Unknown"
DEFAULT_CATEGORY = "other"

# Decimal in Python, a plain number in JSON
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Conventional expense categories.

    Categories are free text on the record (the model may propose others),
    but these are the ones the prompts steer towards and the validator
    recognizes without a warning.
    """
    FOOD = "food"
    TRANSPORTATION = "transportation"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    HEALTH = "health"
    OTHER = "other"


class CaptureSource(str, Enum):
    """How an expense entered the system."""
    TEXT = "text"
    VOICE = "voice"
    RECEIPT = "receipt"
    MANUAL = "manual"


class SummaryPeriod(str, Enum):
    """Aggregation windows. Weeks start on Sunday."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class ReceiptExtractionStatus(str, Enum):
    """Outcome of reading a receipt photo."""
    OK = "ok"                # At least one line item recognized
    NO_ITEMS = "no_items"    # Model answered, nothing usable on the receipt
    FAILED = "failed"        # Call failed or the answer was not a JSON array


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class ParsedExpenseCandidate(BaseModel):
    """
    An expense proposed by extraction.

    CRITICAL: This is PROPOSED data, NOT verified.
    It MUST go through confirmation before it becomes an ExpenseRecord.
    A candidate may carry a zero amount (text fallback found no number);
    the confirmation boundary refuses to store it.
    """

    amount: Amount = Field(
        ...,
        description="Amount in USD"
    )
    merchant: Optional[str] = Field(
        default=None,
        description="Store or business name"
    )
    category: Optional[str] = Field(
        default=None,
        description="Expense category (see ExpenseCategory)"
    )
    description: Optional[str] = Field(
        default=None,
        description="Short description of the expense"
    )


class ExpenseRecord(BaseModel):
    """
    A persisted expense.

    The store assigns ``id`` and ``created_at``; ``date`` is when the money
    was spent (set to "now" when the user confirms).
    """
    id: str = Field(
        ...,
        min_length=1,
        description="Unique expense ID"
    )
    amount: Amount = Field(
        ...,
        description="Amount in USD"
    )
    merchant: str = Field(
        default=DEFAULT_MERCHANT,
        description="Store or business name"
    )
    category: str = Field(
        default=DEFAULT_CATEGORY,
        description="Expense category"
    )
    description: str = Field(
        default="",
        description="Short description of the expense"
    )
    date: datetime = Field(
        ...,
        description="When the expense happened"
    )
    created_at: datetime = Field(
        ...,
        description="When the record was created"
    )
    source: Optional[CaptureSource] = Field(
        default=None,
        description="Capture mode that produced this record"
    )


class ExpenseSummary(BaseModel):
    """Total and count of expenses in one period window. Never persisted."""

    total: Amount = Field(
        default=Decimal("0"),
        description="Sum of amounts in the window"
    )
    count: int = Field(
        default=0,
        ge=0,
        description="Number of expenses in the window"
    )
    period: SummaryPeriod


# =============================================================================
# EXTRACTION RESULTS
# =============================================================================

class TextExtractionResult(BaseModel):
    """A text extraction outcome: always exactly one candidate."""

    candidate: ParsedExpenseCandidate
    used_fallback: bool = Field(
        default=False,
        description="True when the regex fallback produced the candidate"
    )
    error_message: Optional[str] = Field(
        default=None,
        description="Why the model path was abandoned (fallback only)"
    )


class ReceiptExtractionResult(BaseModel):
    """
    Tagged receipt extraction outcome.

    ``candidates`` is empty for both NO_ITEMS and FAILED; ``status`` tells
    them apart for callers that care.
    """

    status: ReceiptExtractionStatus
    candidates: list[ParsedExpenseCandidate] = Field(default_factory=list)
    error_message: Optional[str] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage candidate validation.

    Stage 1: Schema validation (amount, field presence)
    Stage 2: Semantic validation (sanity ceiling, duplicates)
    """

    validation_id: UUID = Field(default_factory=uuid4)
    validated_at: datetime = Field(default_factory=datetime.now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool = Field(
        ...,
        description="Overall validation result; only valid candidates are stored"
    )

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


class RejectedCandidate(BaseModel):
    """A candidate excluded from a batch, with the reason."""

    candidate: ParsedExpenseCandidate
    validation: ValidationResult


class BatchConfirmation(BaseModel):
    """Outcome of confirming several candidates (e.g. one receipt)."""

    saved: list[ExpenseRecord] = Field(default_factory=list)
    rejected: list[RejectedCandidate] = Field(default_factory=list)
