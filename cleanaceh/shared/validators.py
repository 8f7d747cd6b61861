"""Shared validation utilities"""

import re
import uuid
from datetime import time
from typing import Optional, Union

HHMM_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])(:[0-5][0-9])?$")


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def parse_hhmm(value: Union[str, time]) -> time:
    """
    Parse an "HH:MM" (optionally "HH:MM:SS") clock time.

    Raises:
        ValueError: If the value is not a valid 24h clock time
    """
    if isinstance(value, time):
        return value
    match = HHMM_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError("Time must use the 24h HH:MM format")
    return time(int(match.group(1)), int(match.group(2)))


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def format_hhmm(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value else None
