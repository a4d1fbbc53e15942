"""Retry policy for calls that fail due to a stale api key or a dead websocket."""

from __future__ import annotations

import asyncio
import datetime
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from .diagnostics import ACCOUNT_DIAGNOSTICS as DIAGNOSTICS
from .exceptions import ApiException, UnauthenticatedException

__all__ = [
    "ExponentialWait",
    "FixedWait",
    "RetryPolicy",
    "WaitStrategy",
]

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

DEFAULT_ATTEMPTS = 3
DEFAULT_MULTIPLIER = datetime.timedelta(milliseconds=1)
DEFAULT_MAX_WAIT = datetime.timedelta(seconds=10)
RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (
    ApiException,
    UnauthenticatedException,
)

FailureCallback = Callable[[int, Exception], Awaitable[None]]


class WaitStrategy(ABC):
    """Determines how long to wait before the next attempt."""

    @abstractmethod
    def wait_time(self, attempt: int) -> datetime.timedelta:
        """Return the time to wait after the specified (1-based) attempt failed."""


class FixedWait(WaitStrategy):
    """Wait the same amount of time between each attempt."""

    def __init__(self, interval: datetime.timedelta) -> None:
        self._interval = interval

    def wait_time(self, attempt: int) -> datetime.timedelta:
        return self._interval


class ExponentialWait(WaitStrategy):
    """Wait exponentially longer after each attempt, up to a maximum."""

    def __init__(
        self,
        multiplier: datetime.timedelta = DEFAULT_MULTIPLIER,
        maximum: datetime.timedelta = DEFAULT_MAX_WAIT,
    ) -> None:
        self._multiplier = multiplier
        self._maximum = maximum

    def wait_time(self, attempt: int) -> datetime.timedelta:
        return min(self._multiplier * (2**attempt), self._maximum)


class RetryPolicy:
    """Run a unit of work up to a bounded number of attempts.

    After every failed attempt the `on_failure` callback is awaited before
    waiting and trying again. The owner uses it to refresh the api key and
    replace the websocket session, since retrying without doing so would
    fail the same way. When all attempts fail the last error is raised.
    """

    def __init__(
        self,
        attempts: int = DEFAULT_ATTEMPTS,
        wait: WaitStrategy | None = None,
        retry_exceptions: tuple[type[Exception], ...] = RETRY_EXCEPTIONS,
    ) -> None:
        """Initialize RetryPolicy."""
        if attempts < 1:
            raise ValueError("RetryPolicy requires at least one attempt")
        self._attempts = attempts
        self._wait = wait if wait is not None else ExponentialWait()
        self._retry_exceptions = retry_exceptions

    @property
    def attempts(self) -> int:
        """Return the maximum number of attempts."""
        return self._attempts

    async def async_call(
        self,
        func: Callable[[], Awaitable[_T]],
        on_failure: FailureCallback | None = None,
    ) -> _T:
        """Invoke the function until it succeeds or attempts are exhausted."""
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await func()
            except self._retry_exceptions as err:
                DIAGNOSTICS.increment("retry.failure")
                _LOGGER.warning(
                    "Call failed (attempt %d of %d): %s", attempt, self._attempts, err
                )
                if on_failure is not None:
                    await on_failure(attempt, err)
                if attempt >= self._attempts:
                    DIAGNOSTICS.increment("retry.exhausted")
                    raise
                await asyncio.sleep(self._wait.wait_time(attempt).total_seconds())
                continue
            if attempt > 1:
                _LOGGER.debug("Call succeeded after %d attempts", attempt)
            return result
