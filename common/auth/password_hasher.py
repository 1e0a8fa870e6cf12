"""
bcrypt password hashing.

Passwords are pre-hashed with SHA-256 before bcrypt, which keeps bcrypt's
72-byte input limit from silently truncating long passwords.

Example:
    hasher = PasswordHasher(rounds=12)

    hashed = hasher.hash("Passw0rd!")
    assert hasher.compare("Passw0rd!", hashed)

    result = hasher.validate_strength("weak")
    print(result.errors)
"""

import base64
import hashlib
from typing import List, NamedTuple

import bcrypt as bcrypt_lib

from common.auth.errors import InvalidInputError, ValidationError, WeakInputError
from common.utils.password import (
    check_common_passwords,
    generate_password,
    validate_password,
)


class PasswordValidation(NamedTuple):
    """Outcome of a strength check."""
    is_valid: bool
    errors: List[str]


class PasswordHasher:
    """
    One-way password hashing plus strength rules.

    Stateless apart from the configured cost and minimum length.
    """

    def __init__(self, rounds: int = 10, min_length: int = 8, max_length: int = 128):
        """
        Initialize the hasher.

        Args:
            rounds: bcrypt cost factor (4-31)
            min_length: Shortest password accepted by hash()
            max_length: Longest password accepted by validate_strength()
        """
        self.rounds = rounds
        self.min_length = min_length
        self.max_length = max_length

    def _prehash(self, password: str) -> bytes:
        digest = hashlib.sha256(password.encode("utf-8")).digest()
        return base64.b64encode(digest)

    def hash(self, password: str) -> str:
        """
        Hash a password.

        Raises:
            InvalidInputError: password is not a string
            WeakInputError: password is shorter than min_length
        """
        if not isinstance(password, str):
            raise InvalidInputError("Password must be a string")

        if len(password) < self.min_length:
            raise WeakInputError(
                f"Password must be at least {self.min_length} characters",
                details={"minLength": self.min_length},
            )

        salt = bcrypt_lib.gensalt(rounds=self.rounds)
        return bcrypt_lib.hashpw(self._prehash(password), salt).decode("utf-8")

    def compare(self, password: str, hashed: str) -> bool:
        """
        Check a password against a stored hash.

        Raises:
            InvalidInputError: either argument is not a non-empty string
        """
        if not isinstance(password, str) or not isinstance(hashed, str):
            raise InvalidInputError("Password and hash must be strings")

        if not password or not hashed:
            raise InvalidInputError("Password and hash are required")

        try:
            return bcrypt_lib.checkpw(self._prehash(password), hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    def validate_strength(self, password: str) -> PasswordValidation:
        """Return every strength rule the password violates."""
        is_valid, errors = validate_password(
            password,
            min_length=self.min_length,
            max_length=self.max_length,
        )
        return PasswordValidation(is_valid, errors)

    def generate_random(self, length: int = 16) -> str:
        """Generate a password that passes validate_strength by construction."""
        if length < self.min_length or length > self.max_length:
            raise ValidationError(
                f"Generated password length must be between {self.min_length} and {self.max_length}",
                code="INVALID_LENGTH",
            )
        return generate_password(length)

    def is_compromised(self, password: str) -> bool:
        """Check the password against the common-password deny-list."""
        return check_common_passwords(password)
