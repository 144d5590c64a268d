"""Best-effort date extraction from Manifold market questions.

Questions look like "Will GitHub have a red incident on August 30th 2023?".
"""

from __future__ import annotations

import re

_MONTHS: tuple[str, ...] = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

_MONTH_PATTERNS = [
    (number, re.compile(rf"\b{name}\b", re.IGNORECASE))
    for number, name in enumerate(_MONTHS, start=1)
]

# "on <word> <1-2 digits>", e.g. "on August 30th" or "on August 01st"
_DAY_PATTERN = re.compile(r"\bon\s+\w+\s+(\d{1,2})")


def month_from_question(question: str) -> int | None:
    """Return the first calendar month (1-12) named in the question."""
    for number, pattern in _MONTH_PATTERNS:
        if pattern.search(question):
            return number
    return None


def day_from_question(question: str) -> int | None:
    """Return the day of month following "on <month>", if any."""
    match = _DAY_PATTERN.search(question)
    if match is None:
        return None
    day = int(match.group(1))
    return day if 1 <= day <= 31 else None
