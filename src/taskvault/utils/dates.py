"""
Date keyword resolution.

Pure functions, no external dependencies. Weekday names resolve forward: on a
Wednesday, "friday" is two days away and "wednesday" is a week away.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

_DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_DAY_ABBREVIATIONS = {name[:3]: i for i, name in enumerate(_DAY_NAMES)}
_DAY_ABBREVIATIONS.update({"tue": 1, "tues": 1, "wed": 2, "thu": 3, "thur": 3, "thurs": 3})

_TODAY_WORDS = ("asap", "now")
_ISO_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _weekday_index(word: str) -> Optional[int]:
    if word in _DAY_NAMES:
        return _DAY_NAMES.index(word)
    return _DAY_ABBREVIATIONS.get(word)


def is_iso_date(value: str) -> bool:
    if not _ISO_RE.fullmatch(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def resolve_date_keyword(keyword: str, today: Optional[date] = None) -> Optional[str]:
    """
    Resolve a single date keyword into ISO 8601 (YYYY-MM-DD).

    Supports:
    - "today", "tomorrow", "yesterday"
    - "asap" and "now" (today)
    - Weekday names and abbreviations: "friday", "fri", "next monday"
    - Relative: "in 3 days", "in 2 weeks"
    - ISO 8601 passthrough: "2026-02-15"

    Returns:
        ISO 8601 date string or None if the keyword is not a date
    """
    if not keyword:
        return None

    today = today or date.today()
    word = keyword.strip().lower().replace("_", " ")

    if word in _TODAY_WORDS or word == "today":
        return today.isoformat()
    if word == "tomorrow":
        return (today + timedelta(days=1)).isoformat()
    if word == "yesterday":
        return (today - timedelta(days=1)).isoformat()

    if is_iso_date(word):
        return word

    is_next = word.startswith("next ")
    if is_next:
        word = word[5:].strip()

    day_index = _weekday_index(word)
    if day_index is not None:
        days_ahead = day_index - today.weekday()
        if days_ahead <= 0 or is_next:
            days_ahead += 7
        return (today + timedelta(days=days_ahead)).isoformat()

    relative_match = re.fullmatch(r"in (\d+) (days?|weeks?)", word)
    if relative_match:
        amount = int(relative_match.group(1))
        unit = relative_match.group(2)
        delta = timedelta(weeks=amount) if unit.startswith("week") else timedelta(days=amount)
        return (today + delta).isoformat()

    return None
