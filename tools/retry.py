from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 5
    base_delay: float = 0.6


def status_code_of(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status lookup across openai, httpx and ad-hoc errors."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response: Any = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def is_retriable(exc: BaseException) -> bool:
    return status_code_of(exc) in RETRIABLE_STATUS_CODES


def _log_retry(attempts: int) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "remote_call_retry",
            extra={
                "attempt": retry_state.attempt_number,
                "retries": attempts,
                "status": status_code_of(exc) if exc is not None else None,
                "delay_seconds": retry_state.next_action.sleep if retry_state.next_action else None,
            },
        )

    return _before_sleep


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = 5,
    base_delay: float = 0.6,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run `operation`, retrying transient HTTP statuses with `base_delay * 2**i` backoff.

    Anything else, and the last transient failure once attempts run out, propagates unchanged.
    """
    attempts = max(1, retries)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base_delay),
        retry=retry_if_exception(is_retriable),
        before_sleep=_log_retry(attempts),
        reraise=True,
        sleep=sleep,
    )
    async for attempt in retrying:
        with attempt:
            result = await operation()
    return result


async def retry_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    return await with_retry(operation, retries=policy.retries, base_delay=policy.base_delay, sleep=sleep)
