"""
Gateway Middleware.
"""

from gateway.middleware.auth import AuthMiddleware
from gateway.middleware.rate_limit import CredentialThrottle

__all__ = [
    "AuthMiddleware",
    "CredentialThrottle",
]
