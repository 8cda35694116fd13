"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Expense capture (text / voice / receipt → candidate(s) → confirm → save)
2. Summaries (store → period window → total and count)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Bad input is rejected before any model is called
- No expense persists without explicit confirmation
- No candidate with a non-positive amount is ever stored
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.models.expense import (
    DEFAULT_CATEGORY,
    DEFAULT_MERCHANT,
    BatchConfirmation,
    CaptureSource,
    ExpenseRecord,
    ExpenseSummary,
    ParsedExpenseCandidate,
    ReceiptExtractionResult,
    RejectedCandidate,
    SummaryPeriod,
    ValidationResult,
)
from expense_tracker.queries import ExpenseAggregator
from expense_tracker.services.extraction import ReceiptExpenseExtractor, TextExpenseExtractor
from expense_tracker.services.storage import (
    ExpenseStorageInterface,
    SQLiteExpenseStore,
    StorageError,
)
from expense_tracker.services.storage.interface import Clock
from expense_tracker.services.transcription import (
    AudioTranscriptionService,
    TranscriptionError,
)
from expense_tracker.validation import ExpenseValidator


class InputError(ValueError):
    """Capture input rejected before any service call."""

    def __init__(self, capture_mode: str, message: str):
        self.capture_mode = capture_mode
        super().__init__(message)


class CandidateRejectedError(Exception):
    """Candidate refused at the confirmation boundary."""

    def __init__(self, validation: ValidationResult, message: str):
        self.validation = validation
        super().__init__(message)


class PartialBatchError(StorageError):
    """
    Storage failed partway through a batch confirmation.

    Records saved before the failure stay saved (no rollback);
    ``saved`` lists them.
    """

    def __init__(
        self,
        saved: list[ExpenseRecord],
        rejected: list[RejectedCandidate],
        message: str,
    ):
        self.saved = saved
        self.rejected = rejected
        super().__init__(message)


class ExpenseCaptureFlow:
    """
    Orchestrates expense capture and confirmation.

    Flow:
    1. Capture → text, voice note or receipt photo
    2. Extract → model proposes candidate(s) (text never fails, see fallback)
    3. Review → Present to user (PAUSE - require confirmation)
    4. Confirm → Validate; refuse non-positive amounts
    5. Save → Persist with date = now

    Human confirmation (step 4) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        store: ExpenseStorageInterface,
        text_extractor: Optional[TextExpenseExtractor] = None,
        receipt_extractor: Optional[ReceiptExpenseExtractor] = None,
        transcriber: Optional[AudioTranscriptionService] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = datetime.now,
    ):
        # Model-backed services build their Gemini clients on first use
        self._store = store
        self._text_extractor = text_extractor or TextExpenseExtractor()
        self._receipt_extractor = receipt_extractor or ReceiptExpenseExtractor()
        self._transcriber = transcriber or AudioTranscriptionService()
        self._validator = validator or ExpenseValidator(store, clock=clock)
        self._audit_logger = audit_logger
        self._clock = clock

    async def _reject_input(
        self,
        capture_mode: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Audit the rejection, then raise InputError."""
        if self._audit_logger:
            await self._audit_logger.log_input_rejected(
                capture_mode=capture_mode,
                reason=reason,
                correlation_id=correlation_id,
            )
        raise InputError(capture_mode, reason)

    async def capture_text(
        self,
        text: Any,
        correlation_id: Optional[UUID] = None,
    ) -> ParsedExpenseCandidate:
        """
        Extract one candidate from a free-text note.

        Raises:
            InputError: If ``text`` is not a string or is blank
        """
        correlation_id = correlation_id or create_correlation_id()

        if not isinstance(text, str) or not text.strip():
            await self._reject_input("text", "Input must be a non-empty string", correlation_id)

        result = await self._text_extractor.extract(text)

        if self._audit_logger:
            await self._audit_logger.log_text_extracted(
                used_fallback=result.used_fallback,
                amount=str(result.candidate.amount),
                error_message=result.error_message,
                correlation_id=correlation_id,
            )

        return result.candidate

    async def capture_receipt(
        self,
        image_bytes: bytes,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> ReceiptExtractionResult:
        """
        Extract line-item candidates from a receipt photo.

        Raises:
            InputError: If no image was provided or it is not an image type
        """
        correlation_id = correlation_id or create_correlation_id()

        if not image_bytes:
            await self._reject_input("receipt", "No image provided", correlation_id)
        if not (mime_type or "").startswith("image/"):
            await self._reject_input("receipt", "File must be an image", correlation_id)

        result = await self._receipt_extractor.extract(image_bytes, mime_type)

        if self._audit_logger:
            await self._audit_logger.log_receipt_extracted(
                status=result.status.value,
                item_count=len(result.candidates),
                error_message=result.error_message,
                correlation_id=correlation_id,
            )

        return result

    async def transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str = "audio/webm",
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Transcribe a voice note.

        Raises:
            InputError: If no audio was provided
            TranscriptionError: If the clip could not be transcribed
        """
        correlation_id = correlation_id or create_correlation_id()

        if not audio_bytes:
            await self._reject_input("voice", "No audio file provided", correlation_id)

        try:
            transcript = await self._transcriber.transcribe(audio_bytes, mime_type)
        except TranscriptionError as e:
            if self._audit_logger:
                await self._audit_logger.log_transcription_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_transcription_completed(
                transcript_length=len(transcript),
                correlation_id=correlation_id,
            )

        return transcript

    async def capture_voice(
        self,
        audio_bytes: bytes,
        mime_type: str = "audio/webm",
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, ParsedExpenseCandidate]:
        """
        Transcribe a voice note, then extract from the transcript.

        Returns:
            (transcript, candidate)
        """
        correlation_id = correlation_id or create_correlation_id()
        transcript = await self.transcribe(audio_bytes, mime_type, correlation_id)
        candidate = await self.capture_text(transcript, correlation_id)
        return transcript, candidate

    async def _validate(
        self,
        candidate: ParsedExpenseCandidate,
        correlation_id: UUID,
    ) -> ValidationResult:
        result = await self._validator.validate(candidate)

        # Audit validation failures
        if self._audit_logger and not result.is_valid:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
                if i.severity == "error"
            ]
            await self._audit_logger.log_validation_failed(
                issues=issues,
                correlation_id=correlation_id,
            )

        return result

    async def _save(
        self,
        candidate: ParsedExpenseCandidate,
        raw_input: Optional[str],
        source: Optional[CaptureSource],
        correlation_id: UUID,
    ) -> ExpenseRecord:
        """Resolve defaults and write; the date is always "now"."""
        resolved = ParsedExpenseCandidate(
            amount=candidate.amount,
            merchant=candidate.merchant or DEFAULT_MERCHANT,
            category=candidate.category or DEFAULT_CATEGORY,
            description=candidate.description or raw_input or "",
        )

        try:
            record = await self._store.add(resolved, date=self._clock(), source=source)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_user_confirmed(
                expense_id=record.id,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_expense_saved(
                expense_id=record.id,
                merchant=record.merchant,
                amount=str(record.amount),
                correlation_id=correlation_id,
            )

        return record

    async def confirm_and_save(
        self,
        candidate: ParsedExpenseCandidate,
        raw_input: Optional[str] = None,
        source: Optional[CaptureSource] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseRecord:
        """
        Confirm and save one candidate.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Args:
            candidate: The candidate as the user confirmed it (may be edited)
            raw_input: Original note, used when there is no description
            source: Capture mode that produced the candidate

        Raises:
            CandidateRejectedError: If validation found an error (e.g. amount <= 0)
            StorageError: If the write failed
        """
        correlation_id = correlation_id or create_correlation_id()

        validation = await self._validate(candidate, correlation_id)
        if not validation.is_valid:
            raise CandidateRejectedError(
                validation,
                self._validator.get_user_friendly_summary(validation),
            )

        return await self._save(candidate, raw_input, source, correlation_id)

    async def confirm_batch(
        self,
        candidates: list[ParsedExpenseCandidate],
        raw_input: Optional[str] = None,
        source: Optional[CaptureSource] = CaptureSource.RECEIPT,
        correlation_id: Optional[UUID] = None,
    ) -> BatchConfirmation:
        """
        Confirm several candidates (e.g. every line of a receipt).

        Writes are sequential. Invalid candidates are skipped and reported
        in ``rejected``.

        Raises:
            PartialBatchError: If storage failed partway; earlier records
                               stay saved
        """
        correlation_id = correlation_id or create_correlation_id()
        saved: list[ExpenseRecord] = []
        rejected: list[RejectedCandidate] = []

        for candidate in candidates:
            validation = await self._validate(candidate, correlation_id)
            if not validation.is_valid:
                rejected.append(RejectedCandidate(candidate=candidate, validation=validation))
                continue

            try:
                saved.append(await self._save(candidate, raw_input, source, correlation_id))
            except StorageError as e:
                raise PartialBatchError(
                    saved,
                    rejected,
                    f"Saved {len(saved)} of {len(candidates)} expenses before failing: {e}",
                ) from e

        return BatchConfirmation(saved=saved, rejected=rejected)

    async def reject(
        self,
        candidate: ParsedExpenseCandidate,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Record that the user discarded a candidate.

        Nothing is stored.
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_user_rejected(
                reason=reason,
                correlation_id=correlation_id,
            )

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a stored expense. Unknown IDs are a no-op (returns False)."""
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._store.delete(expense_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                correlation_id=correlation_id,
            )

        return deleted


class SummaryFlow:
    """
    Serves period summaries and listings.

    Every answer comes from a fresh range query; nothing is cached.
    """

    def __init__(
        self,
        store: ExpenseStorageInterface,
        aggregator: Optional[ExpenseAggregator] = None,
        clock: Clock = datetime.now,
    ):
        self._aggregator = aggregator or ExpenseAggregator(store, clock=clock)

    async def get_summary(self, period: SummaryPeriod) -> ExpenseSummary:
        return await self._aggregator.summarize(period)

    async def get_all_summaries(self) -> dict[SummaryPeriod, ExpenseSummary]:
        return await self._aggregator.summarize_all()

    async def list_expenses(
        self,
        period: Optional[SummaryPeriod] = None,
    ) -> list[ExpenseRecord]:
        return await self._aggregator.list_expenses(period)


@dataclass
class AppComponents:
    """Everything the HTTP boundary needs, built once at startup."""

    store: ExpenseStorageInterface
    capture_flow: ExpenseCaptureFlow
    summary_flow: SummaryFlow
    audit_logger: AuditLogger


def create_app_components(
    store: Optional[ExpenseStorageInterface] = None,
    db_path: Optional[str] = None,
    clock: Clock = datetime.now,
) -> AppComponents:
    """
    Factory function to create all application components.

    The store is NOT initialized here; ``await components.store.init()``
    is an explicit startup step.

    Args:
        store: Storage to use. Defaults to a SQLite store at ``db_path``
               (or ``EXPENSE_DB_PATH``).
        db_path: SQLite file path for the default store.
        clock: Source of "now" shared by every component.
    """
    store = store or SQLiteExpenseStore(path=db_path, clock=clock)
    audit_logger = AuditLogger()

    capture_flow = ExpenseCaptureFlow(
        store=store,
        audit_logger=audit_logger,
        clock=clock,
    )
    summary_flow = SummaryFlow(store=store, clock=clock)

    return AppComponents(
        store=store,
        capture_flow=capture_flow,
        summary_flow=summary_flow,
        audit_logger=audit_logger,
    )
