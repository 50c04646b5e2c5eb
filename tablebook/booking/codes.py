"""Confirmation code generation with an explicit uniqueness check."""

import logging
import secrets
import string
from collections.abc import Callable, Container
from typing import Optional

from tablebook.config import settings
from tablebook.errors import ConfirmationCodeExhausted

logger = logging.getLogger(__name__)

# Ambiguous characters 0/O and 1/I excluded
CODE_ALPHABET = "".join(
    c for c in string.ascii_uppercase + string.digits if c not in "0O1I"
)


def random_code(length: Optional[int] = None) -> str:
    """Return a random upper-case alphanumeric code."""
    length = length or settings.booking.confirmation_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_confirmation_code(
    existing: Container[str],
    generator: Callable[[], str] = random_code,
    max_attempts: Optional[int] = None,
) -> str:
    """Generate a code not present in ``existing``.

    Raises:
        ConfirmationCodeExhausted: If every attempt collided.
    """
    attempts = max_attempts or settings.booking.confirmation_code_max_attempts
    for attempt in range(1, attempts + 1):
        code = generator()
        if code not in existing:
            return code
        logger.warning("Confirmation code collision on attempt %d", attempt)
    raise ConfirmationCodeExhausted(
        f"Could not generate a unique confirmation code after {attempts} attempts"
    )
