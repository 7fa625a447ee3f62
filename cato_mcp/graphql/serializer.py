"""Serialization of final tool results with a hard size cutoff."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..config import DEFAULT_MAX_RESPONSE_LENGTH

logger = logging.getLogger(__name__)

TRUNCATION_PREAMBLE = (
    "You should answer the user's question as best as you can based on this truncated data. \n"
    "In your final answer, you have to tell that: the answer may be partial because the data "
    "returned exceeded the context window. Here is the truncated data: "
)


def serialize(result: Any) -> str:
    """Compact JSON text, non-ASCII characters kept as is."""
    return json.dumps(result, separators=(",", ":"), ensure_ascii=False, default=str)


def finalize(result: Any, max_length: int = DEFAULT_MAX_RESPONSE_LENGTH) -> str:
    """Serialize a result and cut it to max_length characters if needed.

    A cut result is prefixed with TRUNCATION_PREAMBLE. The cut does not close
    open brackets, so the JSON part may be invalid.
    """
    text = serialize(result)
    if len(text) > max_length:
        logger.info("Truncating result from %d to %d characters", len(text), max_length)
        text = TRUNCATION_PREAMBLE + text[:max_length]
    return text
