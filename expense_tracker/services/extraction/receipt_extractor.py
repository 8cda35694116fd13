"""
Receipt Expense Extraction

Reads a receipt photo with a vision-capable Gemini model and proposes one
candidate per purchased item.

DESIGN DECISION: No partial recovery and no regex fallback.
If the call fails or the answer is not a JSON array, the whole receipt
yields nothing. Guessing amounts from a half-read receipt is worse than
asking the user to retake the photo.

Entries are kept only when ``amount`` is a positive number. Missing
merchant/category/description stay absent on the candidate.
"""

from typing import Any, Optional

import structlog

from expense_tracker.config import GeminiSettings, get_settings
from expense_tracker.models.expense import (
    ExpenseCategory,
    ParsedExpenseCandidate,
    ReceiptExtractionResult,
    ReceiptExtractionStatus,
)
from expense_tracker.services.extraction.parsing import (
    is_number,
    load_json_payload,
    optional_text,
    to_decimal,
)
from expense_tracker.services.gemini import create_gemini_model


logger = structlog.get_logger(__name__)

RECEIPT_MAX_OUTPUT_TOKENS = 1000


def _build_prompt() -> str:
    categories = ", ".join(category.value for category in ExpenseCategory)
    return f"""You analyze receipt images and extract expense data.

Extract ALL purchased items from this receipt. For each item provide:
- amount: the price paid, as a number (no currency symbol)
- merchant: the store or business name printed on the receipt
- category: one of {categories}
- description: a clear description of the item or service

Respond with ONLY a JSON array in this format:
[
  {{"amount": 5.25, "merchant": "Starbucks", "category": "food", "description": "Coffee - Grande Latte"}},
  {{"amount": 2.75, "merchant": "Starbucks", "category": "food", "description": "Pastry - Blueberry Muffin"}}
]

If you cannot read the receipt clearly, return an empty array: []"""


def _candidate_from_entry(entry: Any) -> Optional[ParsedExpenseCandidate]:
    """Turn one array entry into a candidate, or None if it has no usable amount."""
    if not isinstance(entry, dict):
        return None

    amount = entry.get("amount")
    if not is_number(amount) or amount <= 0:
        return None

    return ParsedExpenseCandidate(
        amount=to_decimal(amount),
        merchant=optional_text(entry.get("merchant")),
        category=optional_text(entry.get("category")),
        description=optional_text(entry.get("description")),
    )


class ReceiptExpenseExtractor:
    """
    Extracts zero or more expense candidates from a receipt image.

    Never raises for upstream problems: failures are reported through
    ``ReceiptExtractionResult.status``.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
    ):
        self._model = model
        self._settings = settings

    def _get_model(self) -> Any:
        """Get or create the Gemini vision model."""
        if self._model is None:
            settings = self._settings or get_settings().gemini
            self._model = create_gemini_model(
                model_name=settings.vision_model_name,
                settings=settings,
                json_output=True,
                max_output_tokens=RECEIPT_MAX_OUTPUT_TOKENS,
            )
        return self._model

    async def extract(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> ReceiptExtractionResult:
        """
        Read a receipt image.

        Returns:
            OK with the filtered candidates, NO_ITEMS when the model answered
            but nothing had a positive amount, FAILED otherwise
        """
        try:
            response = await self._get_model().generate_content_async(
                [_build_prompt(), {"mime_type": mime_type, "data": image_bytes}]
            )
            entries = load_json_payload(response.text)
            if not isinstance(entries, list):
                raise ValueError("Invalid response format - expected a JSON array")
            candidates = [
                candidate
                for candidate in (_candidate_from_entry(entry) for entry in entries)
                if candidate is not None
            ]
        except Exception as e:
            logger.warning(
                "receipt_extraction_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return ReceiptExtractionResult(
                status=ReceiptExtractionStatus.FAILED,
                error_message=str(e),
            )

        logger.info(
            "receipt_extraction_completed",
            entries=len(entries),
            kept=len(candidates),
        )

        if not candidates:
            return ReceiptExtractionResult(status=ReceiptExtractionStatus.NO_ITEMS)

        return ReceiptExtractionResult(
            status=ReceiptExtractionStatus.OK,
            candidates=candidates,
        )

    async def extract_expenses(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> list[ParsedExpenseCandidate]:
        """Collapsed contract: the candidates, empty on any failure."""
        result = await self.extract(image_bytes, mime_type)
        return result.candidates
