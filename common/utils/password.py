"""
Password strength validation and generation.

Configurable password rules. Validation accumulates every violated rule
instead of stopping at the first one.

Example:
    from common.utils import validate_password

    is_valid, errors = validate_password("weakpass")
    if not is_valid:
        print("Password errors:", errors)

    password = generate_password(20)
"""

import re
import secrets
from typing import List, Tuple, Optional

LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"
SPECIAL_CHARS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

# Characters used when generating passwords (all accepted by SPECIAL_CHARS)
GENERATED_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

COMMON_PASSWORDS = [
    "password",
    "12345678",
    "qwerty",
    "abc123",
    "password123",
    "123456789",
    "12345",
    "1234567890",
    "letmein",
    "welcome",
]


def validate_password(
    password: str,
    min_length: int = 8,
    max_length: int = 128,
    require_uppercase: bool = True,
    require_lowercase: bool = True,
    require_digit: bool = True,
    require_special: bool = True,
    special_chars: str = SPECIAL_CHARS,
    common_passwords: Optional[List[str]] = None,
) -> Tuple[bool, List[str]]:
    """
    Validate password strength.

    Args:
        password: The password to validate
        min_length: Minimum password length
        max_length: Maximum password length
        require_uppercase: Require at least one uppercase letter
        require_lowercase: Require at least one lowercase letter
        require_digit: Require at least one digit
        require_special: Require at least one special character
        special_chars: String of accepted special characters
        common_passwords: Deny-list. If None, uses the built-in list.

    Returns:
        Tuple of (is_valid: bool, errors: List[str])

    Examples:
        >>> is_valid, errors = validate_password("weak")
        >>> print(is_valid)
        False

        >>> is_valid, errors = validate_password("StrongP@ss123")
        >>> print(is_valid)
        True
    """
    if not isinstance(password, str):
        return False, ["Password must be a string"]

    errors: List[str] = []

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters")

    if len(password) > max_length:
        errors.append(f"Password must be no more than {max_length} characters")

    if require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")

    if require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")

    if require_digit and not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")

    if require_special:
        escaped_chars = re.escape(special_chars)
        if not re.search(f"[{escaped_chars}]", password):
            errors.append("Password must contain at least one special character")

    if check_common_passwords(password, common_passwords):
        errors.append("Password is too common")

    return len(errors) == 0, errors


def check_common_passwords(
    password: str,
    common_passwords: Optional[List[str]] = None,
) -> bool:
    """
    Check if password is in a list of common passwords.

    Args:
        password: The password to check
        common_passwords: List of common passwords. If None, uses built-in list.

    Returns:
        True if password is common (should be rejected)
    """
    if common_passwords is None:
        common_passwords = COMMON_PASSWORDS

    return password.lower() in [p.lower() for p in common_passwords]


def generate_password(length: int = 16) -> str:
    """
    Generate a random password that satisfies every strength rule.

    One character from each required class is placed first, the rest is
    filled from the full alphabet, then the result is shuffled.

    Args:
        length: Password length (at least 4 so every class fits)

    Returns:
        The generated password
    """
    if length < 4:
        raise ValueError("Password length must be at least 4")

    rng = secrets.SystemRandom()
    alphabet = LOWERCASE + UPPERCASE + DIGITS + GENERATED_SPECIAL_CHARS

    chars = [
        rng.choice(LOWERCASE),
        rng.choice(UPPERCASE),
        rng.choice(DIGITS),
        rng.choice(GENERATED_SPECIAL_CHARS),
    ]
    chars.extend(rng.choice(alphabet) for _ in range(length - len(chars)))
    rng.shuffle(chars)

    return "".join(chars)
