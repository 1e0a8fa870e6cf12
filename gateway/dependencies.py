"""
FastAPI dependencies for the gateway.

Builds the auth services once at startup and exposes them to routes.
"""

from functools import lru_cache
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth.jwt_auth import JWTAuth
from common.auth.password_hasher import PasswordHasher
from common.utils.clock import Clock, utcnow
from common.utils.exceptions import ForbiddenException
from gateway.auth.services.auth_service import AuthService
from gateway.auth.services.device_detector import DeviceDetector
from gateway.auth.services.session_policy import SessionPolicy
from gateway.auth.services.session_store import SessionStore
from gateway.auth.services.session_sweeper import SessionSweeper
from gateway.auth.validators import ROLES
from gateway.config import Settings
from gateway.middleware.auth import AuthMiddleware
from gateway.middleware.rate_limit import CredentialThrottle
from gateway.user.services.user_repository import UserRepository


@lru_cache()
def get_device_detector() -> DeviceDetector:
    """Get cached DeviceDetector instance."""
    return DeviceDetector()


_user_repository: Optional[UserRepository] = None
_session_store: Optional[SessionStore] = None
_session_sweeper: Optional[SessionSweeper] = None
_auth_service: Optional[AuthService] = None
_auth_middleware: Optional[AuthMiddleware] = None
_login_throttle: Optional[CredentialThrottle] = None
_register_throttle: Optional[CredentialThrottle] = None


def init_auth_services(
    db: AsyncIOMotorDatabase,
    settings: Settings,
    clock: Clock = utcnow,
) -> None:
    """
    Initialize auth services with database and settings.

    Called once at application startup.

    Args:
        db: MongoDB database connection
        settings: Application settings
        clock: Source of "now"
    """
    global _user_repository, _session_store, _session_sweeper, _auth_service, _auth_middleware
    global _login_throttle, _register_throttle

    jwt_auth = JWTAuth(
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expires_in=settings.JWT_EXPIRE,
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
        is_production=settings.is_production(),
        clock=clock,
    )

    password_hasher = PasswordHasher(
        rounds=settings.BCRYPT_ROUNDS,
        min_length=settings.PASSWORD_MIN_LENGTH,
    )

    _user_repository = UserRepository(db, clock=clock)

    _session_store = SessionStore(
        db=db,
        jwt_auth=jwt_auth,
        device_detector=get_device_detector(),
        clock=clock,
        revoked_retention_days=settings.SESSION_REVOKED_RETENTION_DAYS,
    )

    session_policy = SessionPolicy(_session_store, max_sessions=settings.MAX_SESSIONS_PER_USER)

    _session_sweeper = SessionSweeper(
        session_policy,
        interval_seconds=settings.SESSION_SWEEP_INTERVAL_SECONDS,
        enabled=not settings.is_testing(),
    )

    _auth_service = AuthService(
        users=_user_repository,
        jwt_auth=jwt_auth,
        password_hasher=password_hasher,
        session_policy=session_policy,
        clock=clock,
    )

    _auth_middleware = AuthMiddleware(_auth_service, cookie_name=settings.JWT_COOKIE_NAME)

    _login_throttle = CredentialThrottle(
        settings.LOGIN_RATE_LIMIT,
        scope="login",
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        enabled=settings.RATE_LIMIT_ENABLED,
        message="Too many failed login attempts, please try again later",
    )
    _register_throttle = CredentialThrottle(
        settings.REGISTER_RATE_LIMIT,
        scope="register",
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        enabled=settings.RATE_LIMIT_ENABLED,
        message="Too many registration attempts, please try again later",
    )


async def ensure_indexes() -> None:
    """Create the users and sessions indexes. Safe to run on every startup."""
    await get_user_repository().ensure_indexes()
    await get_session_store().ensure_indexes()


# ─────────────────────────────────────────────────────────────────
# Auth getters
# ─────────────────────────────────────────────────────────────────

def get_user_repository() -> UserRepository:
    """Get user repository instance."""
    if _user_repository is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _user_repository


def get_session_store() -> SessionStore:
    """Get session store instance."""
    if _session_store is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _session_store


def get_session_sweeper() -> SessionSweeper:
    """Get background session sweeper."""
    if _session_sweeper is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _session_sweeper


def get_auth_service() -> AuthService:
    """Get auth service instance."""
    if _auth_service is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _auth_service


def get_auth_middleware() -> AuthMiddleware:
    """Get auth middleware instance."""
    if _auth_middleware is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _auth_middleware


def get_login_throttle() -> CredentialThrottle:
    """Failed-login budget per client IP."""
    if _login_throttle is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _login_throttle


def get_register_throttle() -> CredentialThrottle:
    """Registration budget per client IP."""
    if _register_throttle is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _register_throttle


async def throttle_registration(
    request: Request,
    throttle: Annotated[CredentialThrottle, Depends(get_register_throttle)],
) -> None:
    """Every registration attempt counts, successful or not."""
    client_ip = get_client_ip(request)
    throttle.check(client_ip)
    throttle.record(client_ip)


async def require_auth(
    request: Request,
    auth_middleware: Annotated[AuthMiddleware, Depends(get_auth_middleware)]
) -> dict:
    """
    Dependency that requires authentication.

    Usage:
        @router.get("/protected")
        async def protected_route(user: Annotated[dict, Depends(require_auth)]):
            return {"user_id": user["id"]}
    """
    return await auth_middleware.require_auth(request)


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_roles("admin"))])
    """
    unknown = [role for role in roles if role not in ROLES]
    if unknown:
        raise ValueError(f"Unknown roles: {', '.join(unknown)}")

    async def dependency(user: Annotated[dict, Depends(require_auth)]) -> dict:
        if user.get("role") not in roles:
            raise ForbiddenException(
                message="Insufficient permissions",
                code="INSUFFICIENT_ROLE",
                details={"required": list(roles)},
            )
        return user

    return dependency


def get_current_token(request: Request) -> Optional[str]:
    """Token attached by require_auth, if any."""
    return getattr(request.state, "token", None)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "0.0.0.0"


def get_user_agent(request: Request) -> str:
    """Extract User-Agent from request."""
    return request.headers.get("User-Agent", "")
