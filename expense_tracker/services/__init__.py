"""Services package."""

from expense_tracker.services.extraction import (
    ExtractionError,
    ReceiptExpenseExtractor,
    TextExpenseExtractor,
)
from expense_tracker.services.storage import (
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    InMemoryExpenseStore,
    NotInitializedError,
    SQLiteExpenseStore,
    StorageError,
)
from expense_tracker.services.transcription import (
    AudioTranscriptionService,
    TranscriptionError,
)

__all__ = [
    # Extraction services
    "ExtractionError",
    "ReceiptExpenseExtractor",
    "TextExpenseExtractor",
    # Transcription services
    "AudioTranscriptionService",
    "TranscriptionError",
    # Storage services
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "InMemoryExpenseStore",
    "NotInitializedError",
    "SQLiteExpenseStore",
    "StorageError",
]
