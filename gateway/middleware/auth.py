"""
Authentication middleware for protected routes.

Resolves the request's token from the Authorization header or the auth
cookie, verifies it together with its session, and attaches the user to the
request.
"""

from fastapi import Request

from common.auth.errors import AuthError
from common.utils.exceptions import to_api_exception
from gateway.auth.services.auth_service import AuthService


class AuthMiddleware:
    """
    Validates token and session, and attaches user to request.
    """

    def __init__(self, auth_service: AuthService, cookie_name: str = "token"):
        """
        Initialize AuthMiddleware.

        Args:
            auth_service: For token and session verification
            cookie_name: Name of the auth cookie
        """
        self._auth_service = auth_service
        self._cookie_name = cookie_name

    async def require_auth(self, request: Request) -> dict:
        """
        Validate request is authenticated.

        Returns:
            Public user dict

        Raises:
            UnauthorizedException: no token, bad token, or no live session

        Side Effects:
            - Updates session.lastActivity
            - Attaches user to request.state.user
            - Attaches the presented token to request.state.token
        """
        try:
            user, token = await self._auth_service.authenticate(
                request.headers.get("Authorization"),
                request.cookies.get(self._cookie_name),
            )
        except AuthError as e:
            raise to_api_exception(e)

        request.state.user = user
        request.state.token = token

        return user
