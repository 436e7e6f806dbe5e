"""Text-pattern matching used by rule conditions.

Rules store their description / payer-name patterns as free text.  The
matcher only needs a ``(pattern, text) -> bool`` callable, so a different
pattern facility can be swapped in without touching rule evaluation.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Callable, Optional

from app.core.logging import get_logger

logger = get_logger(__name__)

PatternMatcher = Callable[[str, str], bool]


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Optional[re.Pattern]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        logger.warning(
            "Rule pattern %r is not a valid regex (%s); using substring match",
            pattern,
            exc,
        )
        return None


def pattern_matches(pattern: str, text: str) -> bool:
    """Case-insensitive regex search, or substring search for invalid regexes."""
    compiled = _compile(pattern)
    if compiled is None:
        return pattern.lower() in text.lower()
    return compiled.search(text) is not None
