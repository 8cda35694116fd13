"""Extraction services: free text and receipt images to expense candidates."""

from expense_tracker.services.extraction.receipt_extractor import ReceiptExpenseExtractor
from expense_tracker.services.extraction.text_extractor import (
    FALLBACK_AMOUNT_PATTERN,
    ExtractionError,
    TextExpenseExtractor,
    fallback_parse,
)

__all__ = [
    "ExtractionError",
    "FALLBACK_AMOUNT_PATTERN",
    "ReceiptExpenseExtractor",
    "TextExpenseExtractor",
    "fallback_parse",
]
