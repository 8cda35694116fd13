"""
Audit Models for Expense Tracker

Every significant action in the capture pipeline is logged as an event.
This provides:
1. Traceability from raw capture to stored expense
2. Debugging information when a model call degrades to a fallback
3. A record of which path (model, fallback, empty) each capture took

Events are emitted through structured logging; they are never
modified after creation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


MAX_DESCRIPTION_LENGTH = 500


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the capture pipeline has its own event type.
    """
    # Boundary input
    INPUT_REJECTED = "input_rejected"

    # Text capture
    TEXT_EXTRACTION_COMPLETED = "text_extraction_completed"
    TEXT_EXTRACTION_FALLBACK = "text_extraction_fallback"

    # Receipt capture
    RECEIPT_EXTRACTION_COMPLETED = "receipt_extraction_completed"
    RECEIPT_EXTRACTION_FAILED = "receipt_extraction_failed"

    # Voice capture
    TRANSCRIPTION_COMPLETED = "transcription_completed"
    TRANSCRIPTION_FAILED = "transcription_failed"

    # Human confirmation
    VALIDATION_FAILED = "validation_failed"
    USER_CONFIRMED = "user_confirmed"
    USER_REJECTED = "user_rejected"

    # Persistence
    EXPENSE_SAVED = "expense_saved"
    EXPENSE_DELETED = "expense_deleted"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'receipt', 'audio')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one receipt capture)"
    )

    description: str = Field(
        ...,
        max_length=MAX_DESCRIPTION_LENGTH,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    @field_validator("description", mode="before")
    @classmethod
    def truncate_description(cls, v):
        # Descriptions embed user text (merchant names, reasons)
        if isinstance(v, str) and len(v) > MAX_DESCRIPTION_LENGTH:
            return v[: MAX_DESCRIPTION_LENGTH - 3] + "..."
        return v

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.text_extracted(correlation_id, used_fallback=False)
        event = AuditEventBuilder.expense_saved(expense_id, "Starbucks", "5.25", correlation_id)
    """

    @staticmethod
    def input_rejected(
        capture_mode: str,
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=capture_mode,
            correlation_id=correlation_id,
            description=f"Rejected {capture_mode} input: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def text_extracted(
        correlation_id: UUID,
        used_fallback: bool,
        amount: str,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        if used_fallback:
            return AuditEvent(
                event_type=AuditEventType.TEXT_EXTRACTION_FALLBACK,
                severity=AuditSeverity.WARNING,
                entity_type="text",
                correlation_id=correlation_id,
                description="Model extraction failed; regex fallback used",
                details={"amount": amount},
                error_message=error_message,
            )
        return AuditEvent(
            event_type=AuditEventType.TEXT_EXTRACTION_COMPLETED,
            entity_type="text",
            correlation_id=correlation_id,
            description="Expense extracted from text",
            details={"amount": amount},
        )

    @staticmethod
    def receipt_extracted(
        correlation_id: UUID,
        status: str,
        item_count: int,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        if status == "failed":
            return AuditEvent(
                event_type=AuditEventType.RECEIPT_EXTRACTION_FAILED,
                severity=AuditSeverity.WARNING,
                entity_type="receipt",
                correlation_id=correlation_id,
                description="Receipt could not be read",
                details={"status": status},
                error_message=error_message,
            )
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTION_COMPLETED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt read with {item_count} line items",
            details={"status": status, "item_count": item_count},
        )

    @staticmethod
    def transcription_completed(
        correlation_id: UUID,
        transcript_length: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPTION_COMPLETED,
            entity_type="audio",
            correlation_id=correlation_id,
            description="Voice note transcribed",
            details={"transcript_length": transcript_length},
        )

    @staticmethod
    def transcription_failed(
        correlation_id: UUID,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="audio",
            correlation_id=correlation_id,
            description="Voice note could not be transcribed",
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            correlation_id=correlation_id,
            description=f"Candidate rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def user_confirmed(
        expense_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="User confirmed expense",
            is_user_action=True,
        )

    @staticmethod
    def user_rejected(
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REJECTED,
            entity_type="candidate",
            correlation_id=correlation_id,
            description="User discarded extracted expense",
            details={"reason": reason or "No reason provided"},
            is_user_action=True,
        )

    @staticmethod
    def expense_saved(
        expense_id: str,
        merchant: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {merchant} - ${amount}",
            details={"merchant": merchant, "amount": amount},
        )

    @staticmethod
    def expense_deleted(
        expense_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="expense",
            correlation_id=correlation_id,
            description="Expense could not be saved",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
