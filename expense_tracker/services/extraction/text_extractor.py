"""
Text Expense Extraction

Turns a free-text note ("Spent $5.25 at Starbucks") into one expense
candidate.

DESIGN DECISION: The model is a TRANSLATOR with a safety net.
1. Gemini is asked for one JSON object {amount, merchant, category, description}
2. The answer must carry a non-zero numeric amount
3. ANY failure (network, bad JSON, missing amount, missing API key) falls
   back to a deterministic regex over the input

CRITICAL: extraction never raises for upstream problems. The caller always
gets exactly one candidate; a fallback candidate may have amount 0, and
the confirmation boundary refuses to store it.
"""

import re
from decimal import Decimal
from typing import Any, Optional

import structlog

from expense_tracker.config import GeminiSettings
from expense_tracker.models.expense import (
    DEFAULT_CATEGORY,
    DEFAULT_MERCHANT,
    ExpenseCategory,
    ParsedExpenseCandidate,
    TextExtractionResult,
)
from expense_tracker.services.extraction.parsing import (
    is_number,
    load_json_payload,
    optional_text,
    to_decimal,
)
from expense_tracker.services.gemini import create_gemini_model


logger = structlog.get_logger(__name__)

# Optional "$", digits, optional "." followed by exactly two digits.
# First match wins, scanning left to right.
FALLBACK_AMOUNT_PATTERN = re.compile(r"\$?(\d+(?:\.\d{2})?)")

TEXT_MAX_OUTPUT_TOKENS = 200


class ExtractionError(Exception):
    """The model answer could not be turned into a candidate."""
    pass


def fallback_parse(text: str) -> ParsedExpenseCandidate:
    """
    Deterministic, model-free parse of an expense note.

    Only the amount is recovered; merchant and category get their
    defaults and the description is the input verbatim.
    """
    match = FALLBACK_AMOUNT_PATTERN.search(text)
    amount = Decimal(match.group(1)) if match else Decimal("0")
    return ParsedExpenseCandidate(
        amount=amount,
        merchant=DEFAULT_MERCHANT,
        category=DEFAULT_CATEGORY,
        description=text,
    )


def _build_prompt(text: str) -> str:
    categories = ", ".join(category.value for category in ExpenseCategory)
    return f"""You parse expense notes into structured data for a personal expense tracker.

Extract from the note below:
- amount: the money spent, as a number (no currency symbol)
- merchant: the store or business name ("Unknown" if not mentioned)
- category: one of {categories}
- description: a short, clean description of the expense

Note: "{text}"

Respond with ONLY a JSON object in this exact format:
{{"amount": 5.25, "merchant": "Starbucks", "category": "food", "description": "Coffee at Starbucks"}}"""


class TextExpenseExtractor:
    """
    Extracts a single expense candidate from free text.

    IMPORTANT BOUNDARIES:
    1. This service ONLY proposes data - it never stores anything
    2. It never raises for model or network failures (fallback instead)
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
    ):
        """
        Args:
            model: Object with an async ``generate_content_async(prompt)``.
                   Built from settings on first use when omitted.
            settings: Gemini settings used to build the model.
        """
        self._model = model
        self._settings = settings

    def _get_model(self) -> Any:
        """Get or create the Gemini model."""
        if self._model is None:
            self._model = create_gemini_model(
                settings=self._settings,
                json_output=True,
                max_output_tokens=TEXT_MAX_OUTPUT_TOKENS,
            )
        return self._model

    def _candidate_from_answer(self, answer: str, text: str) -> ParsedExpenseCandidate:
        """
        Validate the model answer and apply defaults.

        Raises:
            ExtractionError: If the answer is not an object with a usable amount
        """
        try:
            data = load_json_payload(answer)
        except ValueError as e:
            raise ExtractionError(f"Model answer is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise ExtractionError("Model answer is not a JSON object")

        amount = data.get("amount")
        # Zero counts as "no amount found", same as a missing one
        if not is_number(amount) or amount == 0:
            raise ExtractionError(f"Invalid amount in model answer: {amount!r}")

        return ParsedExpenseCandidate(
            amount=to_decimal(amount),
            merchant=optional_text(data.get("merchant")) or DEFAULT_MERCHANT,
            category=optional_text(data.get("category")) or DEFAULT_CATEGORY,
            description=optional_text(data.get("description")) or text,
        )

    async def extract(self, text: str) -> TextExtractionResult:
        """
        Extract one candidate, recording which path produced it.

        Args:
            text: The user's note; the caller has already rejected blank input

        Returns:
            TextExtractionResult with ``used_fallback`` set when the regex
            path was taken
        """
        try:
            response = await self._get_model().generate_content_async(_build_prompt(text))
            candidate = self._candidate_from_answer(response.text, text)
        except Exception as e:
            logger.warning(
                "text_extraction_fallback",
                error_type=type(e).__name__,
                error=str(e),
            )
            return TextExtractionResult(
                candidate=fallback_parse(text),
                used_fallback=True,
                error_message=str(e),
            )

        logger.info("text_extraction_completed", amount=str(candidate.amount))
        return TextExtractionResult(candidate=candidate)

    async def parse(self, text: str) -> ParsedExpenseCandidate:
        """Extract and return just the candidate."""
        result = await self.extract(text)
        return result.candidate
