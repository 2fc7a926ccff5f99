"""
Parsing of user-entered trip times.

Accepted inputs:
- datetime objects (returned unchanged)
- ISO-8601 strings, e.g. "2024-01-08T09:30:00"
- "YYYY-MM-DD HH:MM" (24 hour)
- "MM/DD/YYYY HH:MM AM" / "MM/DD/YYYY HH:MM PM"
- "MM/DD/YYYY HH:MM A" / "MM/DD/YYYY HH:MM P" (single-letter meridiem)

Meridiem markers are case-insensitive. Anything else raises ParseError.
"""

import re
from datetime import datetime
from typing import Optional, Union

from paratransit.app.core.exceptions import ParseError

_SINGLE_LETTER_MERIDIEM = re.compile(r"\s([ap])$", re.IGNORECASE)

_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %I:%M %p",
)


def parse_trip_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ParseError(value)
    
    text = value.strip()
    if not text:
        return None
    
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        # Trip times are local wall-clock values
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    
    normalized = _SINGLE_LETTER_MERIDIEM.sub(lambda m: f" {m.group(1)}m", text).upper()
    for fmt in _FORMATS:
        try:
            return datetime.strptime(normalized, fmt)
        except ValueError:
            continue
    
    raise ParseError(value)
