"""Account level API for listing, observing and controlling garage door openers."""

from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .auth import AbstractAuth
from .diagnostics import ACCOUNT_DIAGNOSTICS as DIAGNOSTICS
from .exceptions import (
    ApiException,
    AuthException,
    ConfigurationException,
    UnauthenticatedException,
)
from .listener_registry import ListenerRegistry, UpdateCallback
from .messages import (
    DoorCommand,
    WebSocketRequest,
    door_command_request,
    light_command_request,
)
from .model import DeviceSnapshot, DeviceSummary
from .retry import RetryPolicy
from .ryobi_api import RyobiAPI
from .session_supplier import SessionSupplier
from .streaming_session import WEBSOCKET_URL

__all__ = [
    "AccountManager",
    "AccountStatus",
]

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class AccountStatus(enum.StrEnum):
    """Externally visible status of the account."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"
    CONFIGURATION_ERROR = "configuration_error"


class AccountManager:
    """Session manager for a single Ryobi account.

    Every network operation runs under the retry policy. After each failed
    attempt the api key is discarded and obtained again and the websocket
    session is replaced, so that a silently expired key or a half dead
    socket is not retried as is.
    """

    def __init__(
        self,
        auth: AbstractAuth,
        websocket_url: str = WEBSOCKET_URL,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize AccountManager."""
        self._auth = auth
        self._api = RyobiAPI(auth)
        self._registry = ListenerRegistry()
        self._supplier = SessionSupplier(
            auth,
            self._registry,
            url=websocket_url,
            error_callback=self._async_handle_session_error,
        )
        self._retry_policy = retry_policy or RetryPolicy()
        self._status = AccountStatus.UNKNOWN
        self._status_message: str | None = None
        self._status_callbacks: list[Callable[[AccountStatus], None]] = []

    @property
    def status(self) -> AccountStatus:
        """Return the current account status."""
        return self._status

    @property
    def status_message(self) -> str | None:
        """Return a description of the last status change, if any."""
        return self._status_message

    @property
    def api(self) -> RyobiAPI:
        """Return the underlying device directory client."""
        return self._api

    @property
    def registry(self) -> ListenerRegistry:
        """Return the registry of attribute update listeners."""
        return self._registry

    @property
    def session_supplier(self) -> SessionSupplier:
        """Return the owner of the streaming session."""
        return self._supplier

    def add_status_listener(
        self, target: Callable[[AccountStatus], None]
    ) -> Callable[[], None]:
        """Register a callback invoked when the account status changes.

        The return value is a callable that will unregister the callback.
        """
        self._status_callbacks.append(target)

        def remove_callback() -> None:
            self._status_callbacks.remove(target)

        return remove_callback

    def _set_status(self, status: AccountStatus, message: str | None = None) -> None:
        self._status_message = message
        if status == self._status:
            return
        _LOGGER.debug("Account status changed to %s", status)
        self._status = status
        for callback in list(self._status_callbacks):
            callback(status)

    async def async_login(self) -> None:
        """Obtain the api key, marking the account online or misconfigured.

        Raises ConfigurationException when login fails on every attempt.
        """
        try:
            await self._async_retry(self._auth.async_get_api_key)
        except ApiException as err:
            DIAGNOSTICS.increment("login_failure")
            _LOGGER.error("Could not obtain api key: %s", err)
            self._set_status(
                AccountStatus.CONFIGURATION_ERROR,
                "Can not access account as username and/or password are invalid",
            )
            raise ConfigurationException(f"Unable to log in: {err}") from err
        _LOGGER.info("Successfully obtained an api key")

    async def async_get_devices(self) -> list[DeviceSummary]:
        """Return all devices on the account, or an empty list on failure."""
        try:
            return await self._async_retry(self._api.async_get_devices)
        except ApiException as err:
            DIAGNOSTICS.increment("get_devices_failure")
            _LOGGER.error("Could not get devices, returning empty list: %s", err)
            return []

    async def async_discover_garage_doors(self) -> list[DeviceSummary]:
        """Return the garage door openers on the account."""
        return [
            device
            for device in await self.async_get_devices()
            if device.is_garage_door_opener
        ]

    async def async_get_device(self, device_id: str) -> DeviceSnapshot | None:
        """Return the current state of a device, or None on failure."""

        async def get_device() -> DeviceSnapshot | None:
            return await self._api.async_get_device(device_id)

        try:
            return await self._async_retry(get_device)
        except ApiException as err:
            DIAGNOSTICS.increment("get_device_failure")
            _LOGGER.error("Could not get device %s: %s", device_id, err)
            return None

    async def async_poll_device(self, device_id: str) -> bool:
        """Fetch device state and deliver it to the device listeners.

        Returns False if the device state could not be fetched.
        """
        DIAGNOSTICS.increment("poll_device")
        if (snapshot := await self.async_get_device(device_id)) is None:
            return False
        await self._registry.async_dispatch(device_id, snapshot.updates)
        return True

    async def async_update_door_state(self, device_id: str, open_door: bool) -> bool:
        """Open or close the garage door, returning True on success."""
        command = DoorCommand.OPEN if open_door else DoorCommand.CLOSE
        _LOGGER.debug("Updating door state to: %s", command.name)
        if await self._async_send_command(door_command_request(device_id, command)):
            _LOGGER.info("Successfully updated door state to: %s", command.name)
            return True
        return False

    async def async_update_light_state(self, device_id: str, light_on: bool) -> bool:
        """Turn the garage light on or off, returning True on success."""
        _LOGGER.debug("Updating light state to: %s", light_on)
        if await self._async_send_command(light_command_request(device_id, light_on)):
            _LOGGER.info("Successfully updated light state to: %s", light_on)
            return True
        return False

    async def async_add_listener(self, device_id: str, callback: UpdateCallback) -> None:
        """Register a listener for attribute updates of a device.

        The device is subscribed on the open session, or when the next session
        is opened. Raises ApiException or UnauthenticatedException if the
        subscription on the open session could not be made. The listener
        stays registered in that case.
        """
        registered = False

        async def add_listener() -> None:
            nonlocal registered
            if not registered:
                registered = True
                await self._supplier.async_add_listener(device_id, callback)
                return
            # The failed attempt discarded the session, and a new one
            # subscribes every registered device
            await self._supplier.async_get()

        await self._async_retry(add_listener)

    async def async_remove_listener(
        self, device_id: str, callback: UpdateCallback
    ) -> None:
        """Unregister a listener."""
        await self._supplier.async_remove_listener(device_id, callback)

    async def async_close(self) -> None:
        """Close the streaming session."""
        await self._supplier.async_close()

    def get_diagnostics(self) -> dict[str, Any]:
        """Return diagnostics for the account."""
        session = self._supplier.session
        return {
            "status": str(self._status),
            "session": str(session.state) if session else None,
            "listeners": len(self._registry.device_ids),
            **DIAGNOSTICS.as_dict(),
        }

    async def _async_send_command(self, request: WebSocketRequest) -> bool:
        async def send() -> None:
            session = await self._supplier.async_get()
            await session.async_send_message(request)

        try:
            await self._async_retry(send)
        except (ApiException, UnauthenticatedException) as err:
            DIAGNOSTICS.increment("command_failure")
            _LOGGER.error("Could not send %s: %s", request.method, err)
            return False
        return True

    async def _async_retry(self, func: Callable[[], Awaitable[_T]]) -> _T:
        """Run the call under the retry policy and update the account status."""
        try:
            result = await self._retry_policy.async_call(
                func, self._async_handle_failure
            )
        except AuthException as err:
            self._set_status(
                AccountStatus.CONFIGURATION_ERROR,
                f"Can not access account as username and/or password are invalid: {err}",
            )
            raise
        except (ApiException, UnauthenticatedException) as err:
            self._set_status(AccountStatus.OFFLINE, str(err))
            raise
        self._set_status(AccountStatus.ONLINE)
        return result

    async def _async_handle_failure(self, attempt: int, err: Exception) -> None:
        """Discard the api key and the session after a failed attempt.

        The next attempt logs in again and opens a new session.
        """
        DIAGNOSTICS.increment("reauthenticate")
        _LOGGER.debug("Re-authenticating after failed attempt %d", attempt)
        self._auth.invalidate()
        await self._supplier.async_reset()

    async def _async_handle_session_error(self, err: Exception) -> None:
        """Discard the api key after a websocket error."""
        _LOGGER.error("Received socket error; disposing current session: %s", err)
        DIAGNOSTICS.increment("session_error")
        self._auth.invalidate()
