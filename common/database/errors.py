"""
Storage error translation.

Wraps async repository methods so driver failures surface as the auth
taxonomy's InternalError instead of leaking pymongo exceptions to callers.
Domain errors raised inside the wrapped method pass through untouched.
"""

import functools
import logging

from pymongo.errors import PyMongoError

from common.auth.errors import InternalError

logger = logging.getLogger(__name__)


def storage_errors(component: str):
    """
    Decorator translating PyMongoError into InternalError.

    Args:
        component: Name used in log lines, e.g. "sessions"
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except PyMongoError as e:
                logger.error(f"Storage failure in {component}.{func.__name__}: {e}")
                raise InternalError(
                    f"Storage failure in {component}",
                    details={"operation": func.__name__},
                ) from e

        return wrapper

    return decorator
