"""
Best-effort follow-up steps.

Secondary writes (student counter, enrollment completion, quiz-score
append, notifications, certificates) must never fail the primary
operation. They are retried with exponential backoff and, once the
attempts are exhausted, logged and dropped.

Steps that are not idempotent (counter increments, notification inserts)
are only retried when the store reports the write was never applied;
any other failure is logged and dropped after the first attempt.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from coursehub.core import config
from coursehub.core.errors import StoreError

logger = logging.getLogger(__name__)


def safe_to_retry(error: Exception, idempotent: bool) -> bool:
    if idempotent:
        return True
    return isinstance(error, StoreError) and error.not_applied


async def run_followup(
    name: str,
    func: Callable[..., Awaitable[Any]],
    *args,
    max_attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    idempotent: bool = True,
    **kwargs,
) -> Any:
    """Await ``func(*args, **kwargs)`` with retries; return its result or None"""
    attempts = max_attempts or config.FOLLOWUP_MAX_ATTEMPTS
    delay = config.FOLLOWUP_BACKOFF_SECONDS if backoff is None else backoff

    for attempt in range(1, attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not safe_to_retry(e, idempotent):
                logger.warning("Follow-up '%s' failed and may have partly applied, not retrying: %s", name, e)
                return None
            if attempt == attempts:
                logger.warning("Follow-up '%s' gave up after %d attempts: %s", name, attempts, e)
                return None
            logger.info("Follow-up '%s' attempt %d failed: %s", name, attempt, e)
            await asyncio.sleep(delay * (2 ** (attempt - 1)))
