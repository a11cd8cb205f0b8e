"""Shared utilities used across the service desk."""

import re
from datetime import datetime, timezone
from typing import Optional

_INDIAN_MOBILE = re.compile(r"^[6-9]\d{9}$")


def normalize_phone(value: str) -> str:
    """Strip spaces, dashes, dots and parentheses, plus an optional +91/91 prefix.

    Examples:
        >>> normalize_phone("+91 95446 54402")
        '9544654402'
        >>> normalize_phone("(954) 465-4402")
        '9544654402'
    """
    digits = re.sub(r"[\s\-().]", "", value.strip())
    if digits.startswith("+91"):
        digits = digits[3:]
    elif digits.startswith("91") and len(digits) == 12:
        digits = digits[2:]
    return digits


def validate_phone(value: Optional[str]) -> Optional[str]:
    """Return the normalized 10-digit mobile number, or None when invalid.

    Examples:
        >>> validate_phone("+91 95446 54402")
        '9544654402'
        >>> validate_phone("5123456789") is None
        True
    """
    if not value:
        return None
    digits = normalize_phone(value)
    return digits if _INDIAN_MOBILE.match(digits) else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
