"""
Bounded retry for storage calls.

Only transient failures (connection drops, timeouts) are retried, and the
decorator must only wrap idempotent operations: keyed ledger writes,
compare-and-set updates and inserts keyed by a caller-chosen id. A retried
call that already took effect server-side is then a harmless replay.
"""

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import TransientStoreError

logger = logging.getLogger(__name__)

STORE_RETRY_ATTEMPTS = 4  # first try + 3 retries
STORE_RETRY_MIN_WAIT = 1.0
STORE_RETRY_MAX_WAIT = 8.0


def is_transient_store_error(error: BaseException) -> bool:
    """Classify an exception raised by a store call."""
    return isinstance(error, (TransientStoreError, httpx.TransportError))


store_retry = retry(
    stop=stop_after_attempt(STORE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=STORE_RETRY_MIN_WAIT, max=STORE_RETRY_MAX_WAIT),
    retry=retry_if_exception(is_transient_store_error),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
