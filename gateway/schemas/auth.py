"""
Pydantic models for auth request/response validation.

Request models only check shape; account rules (username format, password
strength, allowed profile fields) are enforced by AuthService so every
violation is reported together.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    """Request body for user registration."""
    username: str = Field(..., description="3-30 characters: letters, digits, _ or -")
    email: str = Field(..., max_length=255)
    password: str


class LoginRequest(BaseModel):
    """Request body for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Request body for access token refresh."""
    refreshToken: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    """Request body for password change."""
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    """
    Request body for profile update.

    Unknown fields are passed through so the service can reject them by name.
    """
    model_config = ConfigDict(extra="allow")

    username: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = Field(
        None,
        description="theme: light | dark | auto, language: es | en | fr | de | pt, notifications: bool",
    )


class DeviceSchema(BaseModel):
    """Device information for a session."""
    type: str = Field(..., description="mobile | tablet | desktop | unknown")
    os: str
    browser: str


class UserResponse(BaseModel):
    """Public user information in API responses."""
    id: str
    username: str
    email: str
    avatar: Optional[str] = None
    role: str
    preferences: Dict[str, Any]
    isActive: bool = True
    lastLogin: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class SessionResponse(BaseModel):
    """Session information in API responses."""
    id: str = Field(..., description="Session ID")
    device: Optional[DeviceSchema] = None
    ipAddress: Optional[str] = None
    createdAt: datetime
    lastActivity: datetime
    expiresAt: datetime
    isCurrent: bool = Field(default=False)


class SessionListResponse(BaseModel):
    """Response for listing sessions."""
    sessions: List[SessionResponse]


class AuthResponse(BaseModel):
    """Response for successful login."""
    user: UserResponse
    token: str
    refreshToken: Optional[str] = None
    expiresAt: datetime
