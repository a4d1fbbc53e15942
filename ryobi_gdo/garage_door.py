"""Current state of a garage door opener, kept fresh by push and polling."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from .account_manager import AccountManager
from .diagnostics import Diagnostics
from .exceptions import ApiException, UnauthenticatedException
from .model import (
    ATTR_ALARM_STATE,
    ATTR_DOOR_POSITION,
    ATTR_DOOR_STATE,
    ATTR_LIGHT_STATE,
    ATTR_MOTION_SENSOR,
    DEVICE_GARAGE_DOOR,
    DEVICE_GARAGE_LIGHT,
    AttributeUpdate,
    AttributeValue,
    DoorState,
)
from .poll_scheduler import PollScheduler

__all__ = ["GarageDoorOpener"]

_LOGGER = logging.getLogger(__name__)


class GarageDoorOpener:
    """A garage door opener on an account.

    Attribute updates from the websocket and from polls are applied in the
    order they are delivered, so the last delivered value wins.
    """

    def __init__(self, account: AccountManager, device_id: str) -> None:
        """Initialize GarageDoorOpener."""
        self._account = account
        self._device_id = device_id
        self._attributes: dict[str, dict[str, AttributeUpdate]] = {}
        self._available: bool | None = None
        self._subscription_failed = False
        self._callbacks: list[Callable[[], None]] = []
        self._diagnostics = Diagnostics()
        self._poll = PollScheduler(self.async_refresh, name=device_id)

    @property
    def device_id(self) -> str:
        """Return the id of the device."""
        return self._device_id

    @property
    def available(self) -> bool | None:
        """Return False if the last poll failed, None before the first poll."""
        return self._available

    @property
    def subscription_failed(self) -> bool:
        """Return True if push notifications could not be set up."""
        return self._subscription_failed

    @property
    def poll_scheduler(self) -> PollScheduler:
        """Return the timers that poll the device state."""
        return self._poll

    def _value(self, component: str, attribute: str) -> AttributeValue | None:
        if update := self._attributes.get(component, {}).get(attribute):
            return update.value
        return None

    @property
    def door_state(self) -> DoorState | None:
        value = self._value(DEVICE_GARAGE_DOOR, ATTR_DOOR_STATE)
        return value if isinstance(value, DoorState) else None

    @property
    def is_open(self) -> bool | None:
        """Return True if the door is fully open."""
        if (state := self.door_state) is None:
            return None
        return state == DoorState.OPEN

    @property
    def door_position(self) -> float | None:
        """Return the door position as a percentage."""
        value = self._value(DEVICE_GARAGE_DOOR, ATTR_DOOR_POSITION)
        return value if isinstance(value, float) else None

    @property
    def motion(self) -> bool | None:
        value = self._value(DEVICE_GARAGE_DOOR, ATTR_MOTION_SENSOR)
        return value if isinstance(value, bool) else None

    @property
    def alarm(self) -> bool | None:
        value = self._value(DEVICE_GARAGE_DOOR, ATTR_ALARM_STATE)
        return value if isinstance(value, bool) else None

    @property
    def light_on(self) -> bool | None:
        value = self._value(DEVICE_GARAGE_LIGHT, ATTR_LIGHT_STATE)
        return value if isinstance(value, bool) else None

    def get_attribute(self, component: str, attribute: str) -> AttributeUpdate | None:
        """Return the last delivered update for an attribute."""
        return self._attributes.get(component, {}).get(attribute)

    def add_update_listener(self, target: Callable[[], None]) -> Callable[[], None]:
        """Register a simple listener notified on updates.

        The return value is a callable that will unregister the callback.
        """
        self._callbacks.append(target)

        def remove_callback() -> None:
            self._callbacks.remove(target)

        return remove_callback

    async def async_start(self) -> None:
        """Subscribe to push updates and start polling.

        When the subscription can't be made the opener falls back to rapid
        polling.
        """
        try:
            await self._account.async_add_listener(
                self._device_id, self._async_handle_update
            )
        except (ApiException, UnauthenticatedException) as err:
            _LOGGER.error("Could not subscribe device for notifications: %s", err)
            self._diagnostics.increment("subscription_failure")
            self._subscription_failed = True
        self._poll.restart(rapid=False, fallback=self._subscription_failed)

    async def async_stop(self) -> None:
        """Stop polling and unregister from push updates."""
        self._poll.stop()
        await self._account.async_remove_listener(
            self._device_id, self._async_handle_update
        )

    async def async_refresh(self) -> None:
        """Fetch the current device state."""
        _LOGGER.debug("Refreshing garage door state")
        self._diagnostics.increment("refresh")
        if not await self._account.async_poll_device(self._device_id):
            _LOGGER.warning("Could not get state for device: %s", self._device_id)
            self._diagnostics.increment("refresh_failure")
            self._set_available(False)
            return
        self._set_available(True)
        _LOGGER.debug("Garage door state successfully refreshed")

    async def async_open(self) -> bool:
        """Open the door, returning True if the command was sent."""
        return await self._async_command(
            self._account.async_update_door_state(self._device_id, True)
        )

    async def async_close(self) -> bool:
        """Close the door, returning True if the command was sent."""
        return await self._async_command(
            self._account.async_update_door_state(self._device_id, False)
        )

    async def async_set_light(self, light_on: bool) -> bool:
        """Turn the light on or off, returning True if the command was sent."""
        return await self._async_command(
            self._account.async_update_light_state(self._device_id, light_on)
        )

    async def _async_command(self, command: Awaitable[bool]) -> bool:
        self._diagnostics.increment("command")
        success = await command
        if not success:
            self._diagnostics.increment("command_failure")
        # Poll rapidly until the door converges on the commanded state
        self._poll.restart(rapid=True)
        return success

    async def _async_handle_update(self, update: AttributeUpdate) -> None:
        self._attributes.setdefault(update.component, {})[update.attribute] = update
        for callback in list(self._callbacks):
            callback()

    def _set_available(self, available: bool) -> None:
        if available == self._available:
            return
        self._available = available
        for callback in list(self._callbacks):
            callback()

    def get_diagnostics(self) -> dict[str, Any]:
        return {
            "available": self._available,
            "subscription_failed": self._subscription_failed,
            "attributes": {
                update.key: str(update.value)
                for component in self._attributes.values()
                for update in component.values()
            },
            **self._diagnostics.as_dict(),
        }
