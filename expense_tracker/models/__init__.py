"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    DEFAULT_CATEGORY,
    DEFAULT_MERCHANT,
    BatchConfirmation,
    CaptureSource,
    ExpenseCategory,
    ExpenseRecord,
    ExpenseSummary,
    ParsedExpenseCandidate,
    ReceiptExtractionResult,
    ReceiptExtractionStatus,
    RejectedCandidate,
    SummaryPeriod,
    TextExtractionResult,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "DEFAULT_CATEGORY",
    "DEFAULT_MERCHANT",
    "BatchConfirmation",
    "CaptureSource",
    "ExpenseCategory",
    "ExpenseRecord",
    "ExpenseSummary",
    "ParsedExpenseCandidate",
    "ReceiptExtractionResult",
    "ReceiptExtractionStatus",
    "RejectedCandidate",
    "SummaryPeriod",
    "TextExtractionResult",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
