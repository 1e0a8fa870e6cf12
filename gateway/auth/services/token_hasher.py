"""
Token hashing for session storage.

Sessions are keyed by a SHA-256 digest of the issued token so the raw
bearer token never sits in the database.
"""

import hashlib


class TokenHasher:
    """
    Handles token hashing.
    """

    @staticmethod
    def hash_token(token: str) -> str:
        """
        Create SHA-256 hash of a token.

        Args:
            token: Plain token string

        Returns:
            Hex-encoded SHA-256 hash
        """
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
