"""
Audit Logger

DESIGN DECISION: Every significant action in the capture pipeline is logged.
This provides:
1. Traceability from raw input to stored expense
2. Visibility into when a model degraded to a fallback
3. Debugging capability without storing raw inputs anywhere else

The audit logger:
- Is async so it slots into the capture flows
- Gracefully handles failures (never crashes the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Callable, Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.config import get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventBuilder


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog for JSON output.

    Called once at import; the app calls it again at startup so a changed
    ``LOG_LEVEL`` takes effect.
    """
    level = (log_level or get_settings().app.log_level).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log only; expenses never leave
    the machine, and neither does their audit trail.
    """

    def __init__(self):
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written, False if logging itself
        failed. Never raises.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error("audit logging failed: %s", e)
            return False

        return True

    async def _emit(self, build: Callable[..., AuditEvent], **kwargs) -> bool:
        """Build an event and log it. Never raises, even if building fails."""
        try:
            event = build(**kwargs)
        except Exception as e:
            logging.getLogger(__name__).error(
                "audit event %s could not be built: %s", build.__name__, e
            )
            return False

        return await self.log(event)

    async def log_input_rejected(
        self,
        capture_mode: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a boundary input rejection."""
        await self._emit(
            AuditEventBuilder.input_rejected,
            capture_mode=capture_mode,
            reason=reason,
            correlation_id=correlation_id,
        )

    async def log_text_extracted(
        self,
        used_fallback: bool,
        amount: str,
        correlation_id: UUID,
        error_message: Optional[str] = None,
    ) -> None:
        """Log a text extraction and which path produced it."""
        await self._emit(
            AuditEventBuilder.text_extracted,
            correlation_id=correlation_id,
            used_fallback=used_fallback,
            amount=amount,
            error_message=error_message,
        )

    async def log_receipt_extracted(
        self,
        status: str,
        item_count: int,
        correlation_id: UUID,
        error_message: Optional[str] = None,
    ) -> None:
        """Log a receipt extraction outcome."""
        await self._emit(
            AuditEventBuilder.receipt_extracted,
            correlation_id=correlation_id,
            status=status,
            item_count=item_count,
            error_message=error_message,
        )

    async def log_transcription_completed(
        self,
        transcript_length: int,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.transcription_completed,
            correlation_id=correlation_id,
            transcript_length=transcript_length,
        )

    async def log_transcription_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.transcription_failed,
            correlation_id=correlation_id,
            error_message=error_message,
        )

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a candidate refused at confirmation."""
        await self._emit(
            AuditEventBuilder.validation_failed,
            issues=issues,
            correlation_id=correlation_id,
        )

    async def log_user_confirmed(
        self,
        expense_id: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.user_confirmed,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )

    async def log_user_rejected(
        self,
        reason: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.user_rejected,
            reason=reason,
            correlation_id=correlation_id,
        )

    async def log_expense_saved(
        self,
        expense_id: str,
        merchant: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.expense_saved,
            expense_id=expense_id,
            merchant=merchant,
            amount=amount,
            correlation_id=correlation_id,
        )

    async def log_expense_deleted(
        self,
        expense_id: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.expense_deleted,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self._emit(
            AuditEventBuilder.save_failed,
            error_message=error_message,
            correlation_id=correlation_id,
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self._emit(
            AuditEventBuilder.system_error,
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a receipt capture).
    Pass it through all subsequent operations.
    """
    return uuid4()
