"""
Reusable field validators
"""
import math
import re
from typing import List, Tuple

PASSWORD_MIN_LENGTH = 12
PASSWORD_SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

PASSWORD_REQUIREMENTS_MESSAGE = (
    f"Password must be at least {PASSWORD_MIN_LENGTH} characters long and contain at least one "
    f"uppercase letter, one lowercase letter, one digit, and one special character ({PASSWORD_SPECIAL_CHARACTERS})"
)


def validate_password_strength(password) -> Tuple[bool, List[str]]:
    """Check a password against the strength policy and list what is missing."""
    if not isinstance(password, str):
        return False, ["Password must be a string"]

    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")
    if not any(c in PASSWORD_SPECIAL_CHARACTERS for c in password):
        errors.append(f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARACTERS})")

    return len(errors) == 0, errors


def is_strong_password(password) -> bool:
    return validate_password_strength(password)[0]


def is_valid_coordinate_pair(latitude, longitude) -> bool:
    """Latitude within [-90, 90] and longitude within [-180, 180], both finite numbers."""
    for value in (latitude, longitude):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    return abs(latitude) <= 90 and abs(longitude) <= 180
