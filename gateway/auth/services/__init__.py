"""
Auth System Services

Contains service classes for authentication operations.
"""

from gateway.auth.services.token_hasher import TokenHasher
from gateway.auth.services.device_detector import DeviceDetector
from gateway.auth.services.session_store import SessionStore
from gateway.auth.services.session_policy import SessionPolicy
from gateway.auth.services.session_sweeper import SessionSweeper
from gateway.auth.services.auth_service import AuthService, TokenState

__all__ = [
    "TokenHasher",
    "DeviceDetector",
    "SessionStore",
    "SessionPolicy",
    "SessionSweeper",
    "AuthService",
    "TokenState",
]
