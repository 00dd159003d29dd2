"""Normalize spoken time phrases to "H:MM AM/PM".

Unrecognized phrases are returned unchanged: showing what the user said is
better than dropping the time.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Tuple

_PM = r"\s*(?:pm|p\.?m\.?)"
_AM = r"\s*(?:am|a\.?m\.?)"

Formatter = Callable[[int, str], str]


def _with_meridiem(label: str) -> Formatter:
    def _format(hour: int, minute: str) -> str:
        return f"{hour}:{minute} {label}"

    return _format


def _fixed_minute(minute: str) -> Formatter:
    def _format(hour: int, _minute: str) -> str:
        return f"{hour}:{minute}"

    return _format


def _from_24_hour(hour: int, minute: str) -> str:
    if hour > 12:
        return f"{hour - 12}:{minute} PM"
    if hour == 12:
        return f"12:{minute} PM"
    if hour == 0:
        return f"12:{minute} AM"
    return f"{hour}:{minute} AM"


_PATTERNS: List[Tuple[re.Pattern, Formatter]] = [
    (re.compile(rf"^(\d{{1,2}}){_PM}$"), _with_meridiem("PM")),
    (re.compile(rf"^(\d{{1,2}}){_AM}$"), _with_meridiem("AM")),
    (re.compile(rf"^(\d{{1,2}}):(\d{{2}}){_PM}$"), _with_meridiem("PM")),
    (re.compile(rf"^(\d{{1,2}}):(\d{{2}}){_AM}$"), _with_meridiem("AM")),
    (re.compile(r"^(\d{1,2})\s+thirty$"), _fixed_minute("30")),
    (re.compile(r"^(\d{1,2})\s+fifteen$"), _fixed_minute("15")),
    (re.compile(r"^(\d{1,2})\s+forty[- ]?five$"), _fixed_minute("45")),
    (re.compile(r"^(\d{2}):?(\d{2})$"), _from_24_hour),
]


def _clean(phrase: str) -> str:
    return re.sub(r"\s+", " ", phrase.lower()).strip()


def match_time(phrase: str) -> Optional[str]:
    """Return the canonical time, or None when no pattern applies."""
    cleaned = _clean(phrase)
    for pattern, formatter in _PATTERNS:
        match = pattern.match(cleaned)
        if not match:
            continue
        hour = int(match.group(1))
        minute = match.group(2) if pattern.groups > 1 else "00"
        if hour > 23 or int(minute) > 59:
            return None
        return formatter(hour, minute)
    return None


def normalize_time(phrase: str) -> str:
    formatted = match_time(phrase)
    return phrase if formatted is None else formatted
