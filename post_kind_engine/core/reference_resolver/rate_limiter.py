"""
Shared rate limiter for outbound fetches.

Resolution tasks for one item run in parallel, and several items may cite the
same site. The limiter spaces requests to a single host and retries requests
the host rejected with 429 or 503.
"""

import logging
import random
import threading
import time
from typing import Callable, Dict, Optional

import requests

from post_kind_engine.core.reference_resolver.config import RATE_LIMIT_DELAY

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 503)


class SharedRateLimiter:
    """
    Thread-safe per-host rate limiter with retry for throttled responses.
    """

    def __init__(
        self,
        min_delay_seconds: float = RATE_LIMIT_DELAY,
        max_retries: int = 2,
        base_backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the rate limiter.

        Args:
            min_delay_seconds: Minimum seconds between two requests to the same host
            max_retries: Retries after a 429/503 response
            base_backoff_seconds: First retry delay, doubled on every attempt
            max_backoff_seconds: Upper bound for a single retry delay
            sleep: Sleep function (replaced in tests)
        """
        self.min_delay_seconds = min_delay_seconds
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._sleep = sleep
        self._last_call: Dict[str, float] = {}
        self._lock = threading.Lock()

    def wait_if_needed(self, host: str) -> None:
        """Block until a request to host respects the minimum delay."""
        if self.min_delay_seconds <= 0:
            return

        with self._lock:
            now = time.monotonic()
            next_allowed = self._last_call.get(host, 0.0) + self.min_delay_seconds
            wait = max(0.0, next_allowed - now)
            # Reserve the slot before sleeping so concurrent callers queue up behind it
            self._last_call[host] = now + wait

        if wait > 0:
            logger.debug(f"Waiting {wait:.2f}s before requesting {host}")
            self._sleep(wait)

    def _retry_delay(self, response: requests.Response, attempt: int) -> float:
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.strip().isdigit():
            return min(float(retry_after.strip()), self.max_backoff_seconds)
        delay = self.base_backoff_seconds * (2.0 ** attempt)
        return min(delay * random.uniform(0.9, 1.1), self.max_backoff_seconds)

    def execute_with_retry(self, host: str, request_call: Callable[[], requests.Response]) -> requests.Response:
        """
        Run a request, retrying while the host answers 429 or 503.

        Args:
            host: Host the request goes to
            request_call: Callable performing the request

        Returns:
            The last response received (possibly still a 429/503 once retries run out)
        """
        response: Optional[requests.Response] = None
        for attempt in range(self.max_retries + 1):
            self.wait_if_needed(host)
            response = request_call()
            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response

            if attempt < self.max_retries:
                delay = self._retry_delay(response, attempt)
                logger.warning(
                    f"{host} answered {response.status_code} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1}), retrying in {delay:.1f}s"
                )
                response.close()
                self._sleep(delay)

        logger.warning(f"{host} still throttling after {self.max_retries + 1} attempts")
        return response


_global_rate_limiter: Optional[SharedRateLimiter] = None


def get_rate_limiter() -> SharedRateLimiter:
    """Get or create the global shared rate limiter."""
    global _global_rate_limiter
    if _global_rate_limiter is None:
        _global_rate_limiter = SharedRateLimiter()
    return _global_rate_limiter
