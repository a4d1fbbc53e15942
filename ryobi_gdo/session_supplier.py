"""Owns the shared streaming session and re-subscribes listeners on reconnect."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .auth import AbstractAuth
from .diagnostics import SESSION_DIAGNOSTICS as DIAGNOSTICS
from .event import AttributeUpdateMessage
from .exceptions import RyobiException
from .listener_registry import ListenerRegistry, UpdateCallback
from .streaming_session import WEBSOCKET_URL, StreamingSession

__all__ = ["SessionSupplier"]

_LOGGER = logging.getLogger(__name__)

SessionErrorCallback = Callable[[Exception], Awaitable[None]]


class SessionSupplier:
    """Lazily creates the streaming session and keeps listeners subscribed.

    At most one session is open at a time. Getting, resetting the session and
    changing listeners are serialized with a lock so that concurrent callers
    never open two connections.
    """

    def __init__(
        self,
        auth: AbstractAuth,
        registry: ListenerRegistry,
        url: str = WEBSOCKET_URL,
        error_callback: SessionErrorCallback | None = None,
    ) -> None:
        """Initialize SessionSupplier."""
        self._auth = auth
        self._registry = registry
        self._url = url
        self._error_callback = error_callback
        self._session: StreamingSession | None = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> StreamingSession | None:
        """Return the current session, if one is open."""
        if self._session is not None and not self._session.closed:
            return self._session
        return None

    async def async_get(self) -> StreamingSession:
        """Return the open session, connecting and subscribing if needed."""
        async with self._lock:
            if (session := self.session) is not None:
                return session
            self._session = None
            session = StreamingSession(
                self._auth,
                self._async_handle_message,
                self._async_handle_session_closed,
                url=self._url,
            )
            DIAGNOSTICS.increment("new_session")
            await session.async_connect()
            try:
                for device_id in self._registry.device_ids:
                    await session.async_subscribe_device(device_id)
            except RyobiException:
                await session.async_close()
                raise
            self._session = session
            return session

    async def async_reset(self) -> None:
        """Drop the current session so the next get() opens a new one."""
        async with self._lock:
            session = self._session
            self._session = None
        if session is not None:
            _LOGGER.debug("Discarding streaming session")
            DIAGNOSTICS.increment("reset")
            await session.async_close()

    async def async_add_listener(self, device_id: str, callback: UpdateCallback) -> None:
        """Register a listener and subscribe the device on an open session."""
        async with self._lock:
            self._registry.add(device_id, callback)
            if (session := self.session) is None:
                _LOGGER.debug(
                    "No session; %s will be subscribed on connection", device_id
                )
                return
            await session.async_subscribe_device(device_id)

    async def async_remove_listener(
        self, device_id: str, callback: UpdateCallback
    ) -> None:
        """Unregister a listener."""
        async with self._lock:
            self._registry.remove(device_id, callback)

    async def async_close(self) -> None:
        """Close the current session."""
        await self.async_reset()

    async def _async_handle_message(self, message: AttributeUpdateMessage) -> None:
        await self._registry.async_dispatch(message.device_id, message.updates)

    async def _async_handle_session_closed(
        self, session: StreamingSession, error: Exception | None
    ) -> None:
        """Forget a session that closed, unless it was already replaced.

        This may run while `async_get` holds the lock in the same task, so it
        must not acquire it; the compare and clear below does not yield.
        """
        if self._session is session:
            _LOGGER.debug("Streaming session closed; dropping reference")
            self._session = None
        if error is not None:
            DIAGNOSTICS.increment("session_error")
            _LOGGER.warning("Streaming session error: %s", error)
            if self._error_callback is not None:
                await self._error_callback(error)
