from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from tools.retry import RetryPolicy, retry_with_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallShape:
    """One argument convention for a remote SDK method."""

    name: str
    invoke: Callable[[Callable[..., Awaitable[Any]], Optional[str], Dict[str, Any], str], Awaitable[Any]]


def _positional(fn: Callable[..., Awaitable[Any]], identifier: Optional[str], payload: Dict[str, Any], id_field: str):
    if identifier is None:
        return fn(**payload)
    return fn(identifier, **payload)


def _keyword(fn: Callable[..., Awaitable[Any]], identifier: Optional[str], payload: Dict[str, Any], id_field: str):
    if identifier is None:
        return fn(**payload)
    return fn(**{id_field: identifier, **payload})


POSITIONAL = CallShape(name="positional", invoke=_positional)
KEYWORD = CallShape(name="keyword", invoke=_keyword)


class CallShapeAdapter:
    """Tries each call shape in order on every call; the first that succeeds wins.

    The SDK's accepted argument convention drifts between releases, so nothing is
    remembered between calls. Each attempt runs under the retry policy, and when
    every shape is rejected the last failure propagates unchanged.
    """

    def __init__(
        self,
        shapes: Sequence[CallShape] = (POSITIONAL, KEYWORD),
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not shapes:
            raise ValueError("at least one call shape is required")
        self.shapes = tuple(shapes)
        self.retry = retry or RetryPolicy(retries=1)
        self._sleep = sleep

    async def call(
        self,
        operation: str,
        fn: Callable[..., Awaitable[Any]],
        identifier: Optional[str] = None,
        payload: Dict[str, Any] | None = None,
        id_field: str = "thread_id",
    ) -> Any:
        body = dict(payload or {})
        last_err: Exception | None = None
        for index, shape in enumerate(self.shapes):
            try:
                result = await retry_with_policy(
                    lambda shape=shape: shape.invoke(fn, identifier, body, id_field),
                    self.retry,
                    sleep=self._sleep,
                )
            except Exception as exc:
                last_err = exc
                if index < len(self.shapes) - 1:
                    logger.warning(
                        "call_shape_rejected",
                        extra={"operation": operation, "shape": shape.name, "error": repr(exc)},
                    )
                continue
            logger.debug("call_shape_ok", extra={"operation": operation, "shape": shape.name, "fallback": index > 0})
            return result
        assert last_err is not None
        raise last_err
