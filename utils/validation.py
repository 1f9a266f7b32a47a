"""Input validation utilities for BlogBench."""

import re
from typing import Optional, Tuple

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_timeout(value: float, name: str = "timeout") -> Tuple[bool, Optional[str]]:
    """Validate a timeout value.

    Args:
        value: Timeout value to validate
        name: Name of the parameter for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, f"{name} must be a number, got {type(value).__name__}"

    if value <= 0:
        return False, f"{name} must be positive, got {value}"

    if value > 3600:
        return False, f"{name} too large (max 3600 seconds), got {value}"

    return True, None


def validate_positive_int(value: int, name: str = "value", max_value: Optional[int] = None) -> Tuple[bool, Optional[str]]:
    """Validate a positive integer.

    Args:
        value: Integer to validate
        name: Name of the parameter for error messages
        max_value: Optional maximum value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be an integer, got {type(value).__name__}"

    if value <= 0:
        return False, f"{name} must be positive, got {value}"

    if max_value is not None and value > max_value:
        return False, f"{name} too large (max {max_value}), got {value}"

    return True, None


def validate_identifier(name: str) -> Tuple[bool, Optional[str]]:
    """Validate a SQL identifier (table or column name).

    Identifiers are interpolated into SQL text, so only plain names are
    accepted; values always travel as bound parameters.

    Args:
        name: Identifier to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(name, str) or not name:
        return False, "Identifier cannot be empty"

    if not _IDENTIFIER_RE.match(name):
        return False, f"Invalid identifier: {name!r}"

    return True, None
