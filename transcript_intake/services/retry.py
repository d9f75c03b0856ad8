"""Bounded retry with backoff shared by every outbound call.

The wait between attempts honours the provider's ``Retry-After`` hint when the
failure carries one and falls back to a fixed default otherwise.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from transcript_intake.config import Settings
from transcript_intake.errors import TransientError
from transcript_intake.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, (when - utc_now()).total_seconds())


def is_transient_status(status: int) -> bool:
    return status == 429 or status >= 500


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    default_backoff: float = 5.0
    max_backoff: float = 60.0
    retry_on: tuple[type[BaseException], ...] = (TransientError,)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings, max_attempts: int | None = None) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts or settings.retry_max_attempts,
            default_backoff=settings.retry_default_backoff_seconds,
        )

    def backoff_for(self, exc: BaseException | None) -> float:
        hint = getattr(exc, "retry_after", None)
        seconds = self.default_backoff if hint is None else hint
        return min(max(0.0, seconds), self.max_backoff)

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.backoff_for(exc)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Transient failure in %s (attempt %s/%s), retrying in %.1fs: %s",
            getattr(retry_state.fn, "__qualname__", "call"),
            retry_state.attempt_number,
            self.max_attempts,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
            exc,
        )

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._before_sleep,
            sleep=self.sleep,
            reraise=True,
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` until it succeeds, raises a non-retryable error, or attempts run out.

        The last exception is re-raised unchanged after exhaustion.
        """
        return await self.retrying()(fn, *args, **kwargs)
