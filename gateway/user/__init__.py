"""
User System

Persistence of user accounts.
"""

from gateway.user.services.user_repository import UserRepository, to_public_user

__all__ = [
    "UserRepository",
    "to_public_user",
]
