"""
Authentication module - JWT tokens, password hashing and the auth error taxonomy.
"""

from common.auth.errors import AuthError
from common.auth.jwt_auth import JWTAuth
from common.auth.password_hasher import PasswordHasher, PasswordValidation

__all__ = ["AuthError", "JWTAuth", "PasswordHasher", "PasswordValidation"]
