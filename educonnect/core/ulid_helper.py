"""ULID generation helper utilities."""

import ulid


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def is_valid_ulid(value: str) -> bool:
    """Check if a string is a valid ULID."""
    try:
        ulid.ULID.from_str(value)
    except (ValueError, TypeError, AttributeError):
        return False
    return True
