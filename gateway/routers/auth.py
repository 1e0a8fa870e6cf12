"""
FastAPI router for auth endpoints.

Registration, login, logout, token refresh, profile and session management.
Domain errors raised by AuthService propagate to the app-level AuthError
handler, which renders them with error_response.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from common.auth.errors import AuthError
from common.utils import success_response
from gateway.auth.services.auth_service import AuthService
from gateway.config import settings
from gateway.dependencies import (
    get_auth_service,
    get_client_ip,
    get_current_token,
    get_login_throttle,
    get_user_agent,
    require_auth,
    throttle_registration,
)
from gateway.middleware.rate_limit import CredentialThrottle
from gateway.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SessionListResponse,
    UpdateProfileRequest,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_auth_cookie(response: Response, token: str, auth_service: AuthService) -> None:
    response.set_cookie(settings.JWT_COOKIE_NAME, token, **auth_service.cookie_options())


def _clear_auth_cookie(response: Response, auth_service: AuthService) -> None:
    options = auth_service.cookie_options()
    response.delete_cookie(
        settings.JWT_COOKIE_NAME,
        path=options["path"],
        secure=options["secure"],
        httponly=options["httponly"],
        samesite=options["samesite"],
    )


@router.post("/register", status_code=201, dependencies=[Depends(throttle_registration)])
async def register(
    body: RegisterRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """
    Register a new user account.

    The returned token has no session yet; log in to start one.
    """
    result = await auth_service.register(body.username, body.email, body.password)

    return success_response(
        {
            "user": UserResponse(**result["user"]).model_dump(mode="json"),
            "token": result["token"],
        },
        message="Registration successful",
    )


@router.post("/login")
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    throttle: Annotated[CredentialThrottle, Depends(get_login_throttle)],
):
    """
    Login to an existing account.

    Sets the auth cookie and returns access and refresh tokens. Failed
    attempts count against the client's login budget.
    """
    client_ip = get_client_ip(request)
    throttle.check(client_ip)

    try:
        result = await auth_service.login(
            body.email,
            body.password,
            ip_address=client_ip,
            user_agent=get_user_agent(request),
        )
    except AuthError:
        throttle.record(client_ip)
        raise

    _set_auth_cookie(response, result["token"], auth_service)

    return success_response(AuthResponse(**result).model_dump(mode="json"), message="Login successful")


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Logout from the current session."""
    await auth_service.logout(get_current_token(request))
    _clear_auth_cookie(response, auth_service)

    return success_response(message="Logged out successfully")


@router.post("/logout-all")
async def logout_all(
    response: Response,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Logout from every session of the current user."""
    revoked_count = await auth_service.logout_all(user["id"])
    _clear_auth_cookie(response, auth_service)

    return success_response({"revokedCount": revoked_count}, message="Logged out of all sessions")


@router.post("/refresh")
async def refresh(
    request: Request,
    response: Response,
    body: RefreshRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Issue a new access token from a refresh token."""
    result = await auth_service.refresh_token(
        body.refreshToken,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )

    _set_auth_cookie(response, result["token"], auth_service)

    return success_response({
        "token": result["token"],
        "expiresAt": result["expiresAt"],
    })


@router.get("/profile")
async def get_profile(
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Get the current user's profile."""
    profile = await auth_service.get_profile(user["id"])
    return success_response(UserResponse(**profile).model_dump(mode="json"))


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Update username, email, avatar or preferences."""
    updated = await auth_service.update_profile(user["id"], body.model_dump(exclude_unset=True))
    return success_response(UserResponse(**updated).model_dump(mode="json"), message="Profile updated")


@router.get("/me")
async def me(
    request: Request,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Get the authenticated user together with the current session."""
    session = await auth_service.session_info(get_current_token(request))

    return success_response({
        "user": UserResponse(**user).model_dump(mode="json"),
        "session": session,
    })


@router.post("/change-password")
async def change_password(
    response: Response,
    body: ChangePasswordRequest,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """
    Change the current user's password.

    Every session ends, including this one.
    """
    revoked_count = await auth_service.change_password(user["id"], body.currentPassword, body.newPassword)
    _clear_auth_cookie(response, auth_service)

    return success_response(
        {"revokedCount": revoked_count},
        message="Password changed. Please log in again.",
    )


@router.get("/sessions")
async def list_sessions(
    request: Request,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """List the current user's active sessions."""
    sessions = await auth_service.list_sessions(user["id"], get_current_token(request))
    return success_response(SessionListResponse(sessions=sessions).model_dump(mode="json"))


@router.delete("/sessions/{session_id}")
async def revoke_session(
    request: Request,
    session_id: str,
    user: Annotated[dict, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
):
    """Revoke one of the current user's other sessions."""
    await auth_service.revoke_session(user["id"], session_id, get_current_token(request))
    return success_response(message="Session revoked successfully")
