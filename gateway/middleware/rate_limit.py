"""
Brute-force throttling for the credential endpoints.

Counters live in a ``limits`` storage: process memory by default, or a
shared backend (``mongodb://...``, ``redis://...``) when several workers
serve the API. Windows are moving, keyed by scope and client IP.
"""

import logging
import math
import time

from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from common.utils.exceptions import RateLimitException

logger = logging.getLogger(__name__)


class CredentialThrottle:
    """
    Per-client attempt budget for one endpoint.

    ``check`` refuses a request once the budget is spent; ``record`` spends
    one attempt. Callers decide what counts: login records failures only,
    registration records every attempt.
    """

    def __init__(
        self,
        limit: str,
        scope: str,
        storage_uri: str = "memory://",
        enabled: bool = True,
        message: str = "Too many attempts, please try again later",
    ):
        """
        Args:
            limit: Rate string such as "5/15 minutes" or "3/hour"
            scope: Namespace for the counters, e.g. "login"
            storage_uri: limits storage URI
            enabled: When False, check and record do nothing
            message: Client-facing message of the 429 response

        Raises:
            ValueError: limit is not a valid rate string
        """
        self._item: RateLimitItem = parse(limit)
        self._scope = scope
        self._limiter = MovingWindowRateLimiter(storage_from_string(storage_uri))
        self._message = message
        self.enabled = enabled

    def check(self, key: str) -> None:
        """
        Raises:
            RateLimitException: the budget for key is spent (429 with Retry-After)
        """
        if not self.enabled:
            return

        if not self._limiter.test(self._item, self._scope, key):
            retry_after = self.retry_after(key)
            logger.warning(f"Throttled {self._scope} attempts from {key} for {retry_after}s")
            raise RateLimitException(self._message, retry_after=retry_after)

    def record(self, key: str) -> None:
        if self.enabled:
            self._limiter.hit(self._item, self._scope, key)

    def retry_after(self, key: str) -> int:
        """Whole seconds until the oldest counted attempt leaves the window."""
        reset_time, _ = self._limiter.get_window_stats(self._item, self._scope, key)
        return max(1, math.ceil(reset_time - time.time()))
