"""Library to access the Ryobi device directory API."""

from __future__ import annotations

import logging
from typing import Any

from .auth import AbstractAuth, TRANSFORM_VERSION, TRANSFORM_VERSION_HEADER
from .diagnostics import API_DIAGNOSTICS as DIAGNOSTICS, redact_data
from .exceptions import ApiException, DecodeException
from .model import DeviceSnapshot, DeviceSummary

__all__ = ["RyobiAPI"]

_LOGGER = logging.getLogger(__name__)

DEVICES_URL = "api/devices"
RESULT = "result"

# Device responses are only returned in the expected shape with this header
DEVICE_HEADERS = {TRANSFORM_VERSION_HEADER: TRANSFORM_VERSION}


def _result_list(response_data: dict[str, Any]) -> list[Any]:
    result = response_data.get(RESULT)
    if result is None:
        return []
    if not isinstance(result, list):
        raise ApiException(f"Server returned malformed response: {response_data}")
    return result


class RyobiAPI:
    """Client library to list devices and fetch device state."""

    def __init__(self, auth: AbstractAuth):
        """Initialize the API and store the auth so we can make requests."""
        self._auth = auth

    async def async_get_devices(self) -> list[DeviceSummary]:
        """Return the devices on the account."""
        DIAGNOSTICS.increment("get_devices")
        response_data = await self._auth.get_json(DEVICES_URL, headers=DEVICE_HEADERS)
        try:
            return [
                DeviceSummary.from_api(device_data)
                for device_data in _result_list(response_data)
            ]
        except DecodeException as err:
            DIAGNOSTICS.increment("get_devices.decode_error")
            raise ApiException(f"Unable to parse devices: {err}") from err

    async def async_get_device(self, device_id: str) -> DeviceSnapshot | None:
        """Return the full state of a specific device."""
        DIAGNOSTICS.increment("get_device")
        response_data = await self._auth.get_json(
            f"{DEVICES_URL}/{device_id}", headers=DEVICE_HEADERS
        )
        devices = _result_list(response_data)
        if not devices:
            _LOGGER.debug("No device in response for %s", device_id)
            return None
        try:
            return DeviceSnapshot.from_api(devices[0])
        except DecodeException as err:
            DIAGNOSTICS.increment("get_device.decode_error")
            _LOGGER.debug("Unable to parse device: %s", redact_data(devices[0]))
            raise ApiException(f"Unable to parse device {device_id}: {err}") from err
