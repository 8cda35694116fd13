"""
Helpers for reading model answers.

Models are asked for bare JSON, but sometimes wrap it in a Markdown code
fence anyway. These helpers strip that and check the shapes we rely on.
"""

import json
import math
import re
from decimal import Decimal
from typing import Any, Optional


_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def load_json_payload(text: str) -> Any:
    """
    Parse a model answer as JSON, tolerating a surrounding code fence.

    Raises:
        ValueError: If the answer is not valid JSON (json.JSONDecodeError
                    is a ValueError)
    """
    cleaned = _CODE_FENCE.sub("", text.strip())
    return json.loads(cleaned)


def is_number(value: Any) -> bool:
    """True for finite int/float values that fit a float. Booleans are not amounts."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


def optional_text(value: Any) -> Optional[str]:
    """Keep non-empty strings, drop everything else."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def to_decimal(value: float) -> Decimal:
    """Convert a JSON number to Decimal without binary float noise."""
    return Decimal(str(value))
