"""ULID generation helper utilities."""

from typing import Optional

import ulid

BOOKING_REFERENCE_PREFIX = "BK-"


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def parse_ulid(ulid_str: str) -> Optional[ulid.ULID]:
    """Parse and validate a ULID string."""
    try:
        return ulid.ULID.from_str(ulid_str)
    except (ValueError, TypeError):
        return None


def is_valid_ulid(ulid_str: str) -> bool:
    """Check if a string is a valid ULID."""
    return parse_ulid(ulid_str) is not None


def generate_booking_reference() -> str:
    """
    Generate a short human-readable booking reference.

    Uses the random tail of a fresh ULID (50 bits of entropy).
    """
    return f"{BOOKING_REFERENCE_PREFIX}{str(ulid.ULID())[-10:]}"
