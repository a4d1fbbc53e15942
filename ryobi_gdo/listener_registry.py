"""Registry of per-device listeners for attribute updates."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable

from .diagnostics import ACCOUNT_DIAGNOSTICS as DIAGNOSTICS
from .model import AttributeUpdate

__all__ = ["ListenerRegistry", "UpdateCallback"]

_LOGGER = logging.getLogger(__name__)

UpdateCallback = Callable[[AttributeUpdate], Awaitable[None]]


class ListenerRegistry:
    """Maps a device id to the callbacks interested in its attribute updates.

    Updates from the websocket and from polling are both delivered through
    `async_dispatch`. Callbacks for a device are invoked in registration
    order and updates are delivered in the order given, so the most recently
    delivered value for an attribute is the current one.
    """

    def __init__(self) -> None:
        """Initialize ListenerRegistry."""
        self._listeners: dict[str, list[UpdateCallback]] = {}

    @property
    def device_ids(self) -> list[str]:
        """Return the devices that have at least one listener."""
        return list(self._listeners)

    def has_listeners(self, device_id: str) -> bool:
        """Return True if any callback is registered for the device."""
        return device_id in self._listeners

    def add(self, device_id: str, callback: UpdateCallback) -> bool:
        """Register a callback, returning False if it was already registered."""
        callbacks = self._listeners.setdefault(device_id, [])
        if callback in callbacks:
            return False
        callbacks.append(callback)
        return True

    def remove(self, device_id: str, callback: UpdateCallback) -> None:
        """Unregister a callback; unknown callbacks are ignored."""
        if not (callbacks := self._listeners.get(device_id)):
            return
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            del self._listeners[device_id]

    async def async_dispatch(
        self, device_id: str, updates: Iterable[AttributeUpdate]
    ) -> None:
        """Deliver updates to every callback registered for the device."""
        callbacks = list(self._listeners.get(device_id, []))
        if not callbacks:
            _LOGGER.debug("No listeners for device %s", device_id)
            return
        for update in updates:
            DIAGNOSTICS.increment("dispatch")
            for callback in callbacks:
                try:
                    await callback(update)
                except Exception:  # pylint: disable=broad-except
                    DIAGNOSTICS.increment("dispatch_exception")
                    _LOGGER.exception("Uncaught error in listener for %s", device_id)
