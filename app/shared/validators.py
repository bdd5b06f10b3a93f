"""Shared validation utilities"""

from typing import Iterable, Optional


def validate_choice(value: Optional[str], allowed: Iterable[str], field: str) -> Optional[str]:
    """
    Validate that a value is one of an allowed set.

    Args:
        value: Incoming value (None passes through)
        allowed: Accepted values, compared case-sensitively
        field: Field name used in the error message

    Returns:
        The value unchanged

    Raises:
        ValueError: If the value is not allowed
    """
    if value is None:
        return value

    allowed = list(allowed)
    if value not in allowed:
        raise ValueError(f"Invalid {field}. Must be one of: {', '.join(allowed)}")

    return value
