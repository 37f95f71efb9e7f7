"""
Retry Executor - Bounded Retry with Refusal-Driven Reprompting
Wraps one asynchronous completion call. A refusal invokes a hook before the
next attempt so the caller can rebuild its prompt with the bypass addendum;
any other failure is retried verbatim.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .errors import ContextFoxError, RefusalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

FULFILLED = "fulfilled"
REJECTED = "rejected"


@dataclass
class RetryResult(Generic[T]):
    status: str
    value: Optional[T] = None
    reason: Optional[Exception] = None
    attempts: int = 0

    @property
    def fulfilled(self) -> bool:
        return self.status == FULFILLED


def is_refusal(error: Exception) -> bool:
    """Refusals are tagged by type, or by the REFUSAL: prefix in the message."""
    return isinstance(error, RefusalError) or "REFUSAL:" in str(error)


async def call_with_retry(
    task_name: str,
    api_call: Callable[[], Awaitable[T]],
    on_refusal: Optional[Callable[[], None]] = None,
    max_attempts: int = 2,
    delay_seconds: float = 0.0,
) -> RetryResult:
    """
    Attempt ``api_call`` up to ``max_attempts`` times.

    A blank string result counts as a soft failure and is retried, except on
    the final attempt where it is accepted as-is. Never raises for call
    failures; exhausted attempts return a rejected result carrying the last
    error.
    """
    last_error: Optional[Exception] = None

    for attempt in range(max_attempts):
        is_last = attempt == max_attempts - 1
        if attempt > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

        try:
            result = await api_call()
        except Exception as e:
            last_error = e
            if is_last:
                break
            logger.warning(f"[call_with_retry] {task_name} attempt {attempt + 1}/{max_attempts} failed: {e}")
            if is_refusal(e):
                logger.info(f"[call_with_retry] Refusal detected for {task_name}, appending refusal prompt on retry")
                if on_refusal is not None:
                    on_refusal()
            continue

        if isinstance(result, str) and not result.strip() and not is_last:
            logger.warning(f"[call_with_retry] Empty response for {task_name}, retrying...")
            continue

        return RetryResult(status=FULFILLED, value=result, attempts=attempt + 1)

    if last_error is None:
        last_error = ContextFoxError("Max retries exceeded")
    logger.error(f"[call_with_retry] All {max_attempts} attempts exhausted for {task_name}: {last_error}")
    return RetryResult(status=REJECTED, reason=last_error, attempts=max_attempts)
