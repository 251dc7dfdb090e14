"""
Password validation for account registration
"""

import re
from typing import Tuple

MIN_LENGTH = 8
MAX_LENGTH = 128

# (pattern, message) pairs checked in order
_RULES = (
    (r'[A-Z]', "Password must contain at least one uppercase letter"),
    (r'[a-z]', "Password must contain at least one lowercase letter"),
    (r'\d', "Password must contain at least one number"),
    (r'[^A-Za-z0-9]', "Password must contain at least one special character"),
)


def check_password(password: str) -> Tuple[bool, str]:
    """Returns (is_valid, error_message)"""
    if not password:
        return False, "Password is required"
    if len(password) < MIN_LENGTH:
        return False, f"Password must be at least {MIN_LENGTH} characters long"
    if len(password) > MAX_LENGTH:
        return False, f"Password must not exceed {MAX_LENGTH} characters"

    for pattern, message in _RULES:
        if not re.search(pattern, password):
            return False, message
    return True, ""


def validate_password(password: str) -> None:
    """
    Raises:
        ValueError: If password doesn't meet requirements
    """
    is_valid, error_message = check_password(password)
    if not is_valid:
        raise ValueError(error_message)
