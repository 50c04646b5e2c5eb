"""Shared utilities for customer contact fields."""

import re
from typing import Optional

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("+7 (912) 345-67-89")
        '+79123456789'
        >>> normalize_phone("8 912 345 67 89")
        '89123456789'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def normalize_email(value: Optional[str]) -> Optional[str]:
    """Lower-case and trim an email address; None if it is not plausible."""
    if not value:
        return None
    value = value.strip().lower()
    return value if _EMAIL_RE.match(value) else None
