"""Periodic polling that keeps device state fresh when the websocket is not."""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Awaitable, Callable

from .diagnostics import POLL_DIAGNOSTICS as DIAGNOSTICS

__all__ = ["PollScheduler"]

_LOGGER = logging.getLogger(__name__)

NORMAL_REFRESH_INTERVAL = datetime.timedelta(seconds=60)
RAPID_REFRESH_INTERVAL = datetime.timedelta(seconds=5)
RAPID_INITIAL_DELAY = datetime.timedelta(seconds=3)


class PollScheduler:
    """Runs a normal and a rapid polling timer for one device.

    The normal timer runs for as long as the scheduler is started. The rapid
    timer is started after a local command to converge on the new state
    quickly, and is cancelled by the next tick of the normal timer. At most
    one timer of each kind is ever active.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        name: str = "",
        normal_interval: datetime.timedelta | None = None,
        rapid_interval: datetime.timedelta | None = None,
        rapid_initial_delay: datetime.timedelta | None = None,
    ) -> None:
        """Initialize PollScheduler."""
        self._refresh = refresh
        self._name = name
        self._normal_interval = normal_interval or NORMAL_REFRESH_INTERVAL
        self._rapid_interval = rapid_interval or RAPID_REFRESH_INTERVAL
        self._rapid_initial_delay = (
            rapid_initial_delay
            if rapid_initial_delay is not None
            else RAPID_INITIAL_DELAY
        )
        self._normal_task: asyncio.Task[None] | None = None
        self._rapid_task: asyncio.Task[None] | None = None

    @property
    def normal_active(self) -> bool:
        """Return True if the normal timer is scheduled."""
        return self._normal_task is not None and not self._normal_task.done()

    @property
    def rapid_active(self) -> bool:
        """Return True if the rapid timer is scheduled."""
        return self._rapid_task is not None and not self._rapid_task.done()

    def restart(self, rapid: bool = False, fallback: bool = False) -> None:
        """Cancel both timers and schedule the ones for the new mode.

        A normal restart polls immediately and then on the normal interval. A
        rapid restart polls on the rapid interval and delays the normal timer
        by a full interval, whose first tick ends rapid polling. With
        `fallback`, used when push notifications are unavailable, a normal
        restart is scheduled the same way as a rapid one.
        """
        self.stop()
        DIAGNOSTICS.increment("restart_rapid" if rapid else "restart")
        _LOGGER.debug(
            "Restarting %s polls for %s", "rapid" if rapid else "normal", self._name
        )
        rapid = rapid or fallback
        normal_delay = self._normal_interval if rapid else datetime.timedelta(0)
        self._normal_task = asyncio.create_task(self._async_run_normal(normal_delay))
        if rapid:
            self._rapid_task = asyncio.create_task(self._async_run_rapid())

    def stop(self) -> None:
        """Cancel both timers."""
        self._stop_normal()
        self._stop_rapid()

    def _stop_normal(self) -> None:
        if self._normal_task is not None:
            self._normal_task.cancel()
        self._normal_task = None

    def _stop_rapid(self) -> None:
        if self._rapid_task is not None:
            self._rapid_task.cancel()
        self._rapid_task = None

    async def _async_run_normal(self, initial_delay: datetime.timedelta) -> None:
        delay = initial_delay
        while True:
            await asyncio.sleep(delay.total_seconds())
            _LOGGER.debug("Starting normal poll for %s", self._name)
            self._stop_rapid()
            await self._async_refresh("normal")
            delay = self._normal_interval

    async def _async_run_rapid(self) -> None:
        delay = self._rapid_initial_delay
        while True:
            await asyncio.sleep(delay.total_seconds())
            _LOGGER.debug("Starting rapid poll for %s", self._name)
            await self._async_refresh("rapid")
            delay = self._rapid_interval

    async def _async_refresh(self, kind: str) -> None:
        """Refresh once; a failure never ends the schedule."""
        DIAGNOSTICS.increment(f"poll.{kind}")
        try:
            with DIAGNOSTICS.timer("refresh"):
                await self._refresh()
        except asyncio.CancelledError:
            raise
        except Exception:  # pylint: disable=broad-except
            DIAGNOSTICS.increment("poll_failure")
            _LOGGER.exception("Unexpected error polling %s", self._name)
