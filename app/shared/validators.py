"""Shared validation utilities"""

import re
from datetime import datetime, time
from typing import Optional

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_clock_time(value: str) -> str:
    """
    Validate a 24-hour clock time and normalize it to HH:MM.

    Accepts "HH:MM" and "HH:MM:SS" (database time columns come back with seconds).

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    if not value or not HHMM_PATTERN.match(value.strip()):
        raise ValueError("Time must be in 24-hour HH:MM format")
    return value.strip()[:5]


def parse_clock_time(value: str) -> time:
    """Parse "HH:MM" / "HH:MM:SS" into a time object"""
    hhmm = validate_clock_time(value)
    return datetime.strptime(hhmm, "%H:%M").time()
