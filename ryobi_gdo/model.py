"""Data model for garage door opener devices and their attributes.

Attribute values arrive from the API and websocket as loosely typed JSON
of the form `{"value": ..., "lastSet": ...}`. They are decoded once, here,
into an `AttributeUpdate` that carries a `ValueType` tag alongside the
value so that callers never need to inspect the raw JSON type.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import DecodeException
from .registry import Registry

__all__ = [
    "AttributeUpdate",
    "DeviceMetaData",
    "DeviceSnapshot",
    "DeviceSummary",
    "DoorState",
    "ValueType",
    "decode_attribute",
]

_LOGGER = logging.getLogger(__name__)

GARAGE_DOOR_OPENER_TYPE = "gdoMasterUnit"

DEVICE_GARAGE_DOOR = "garageDoor_7"
DEVICE_GARAGE_LIGHT = "garageLight_7"

ATTR_DOOR_STATE = "doorState"
ATTR_DOOR_POSITION = "doorPosition"
ATTR_MOTION_SENSOR = "motionSensor"
ATTR_ALARM_STATE = "alarmState"
ATTR_LIGHT_STATE = "lightState"

VALUE = "value"
LAST_SET = "lastSet"
ATTRIBUTES = "attributes"

DECODERS = Registry()


class DoorState(enum.IntEnum):
    """State of the garage door as reported by the opener."""

    CLOSED = 0
    OPEN = 1
    CLOSING = 2
    OPENING = 3
    FAULT = 4

    @classmethod
    def from_value(cls, value: Any) -> DoorState:
        """Decode a numeric door state code, which may be sent as a float."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DecodeException(f"Door state must be numeric, got: {value!r}")
        if int(value) != value:
            raise DecodeException(f"Door state must be integral, got: {value!r}")
        try:
            return cls(int(value))
        except ValueError as err:
            raise DecodeException(f"Unknown door state: {value!r}") from err


class ValueType(enum.StrEnum):
    """Tag describing the type of a decoded attribute value."""

    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    DOOR_STATE = "door_state"


AttributeValue = bool | float | str | DoorState

ATTRIBUTE_TYPES: dict[str, ValueType] = {
    ATTR_DOOR_STATE: ValueType.DOOR_STATE,
    ATTR_DOOR_POSITION: ValueType.NUMBER,
    ATTR_MOTION_SENSOR: ValueType.BOOLEAN,
    ATTR_ALARM_STATE: ValueType.BOOLEAN,
    ATTR_LIGHT_STATE: ValueType.BOOLEAN,
}


@DECODERS.register(ValueType.BOOLEAN)
def _decode_boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise DecodeException(f"Expected boolean value, got: {value!r}")
    return value


@DECODERS.register(ValueType.NUMBER)
def _decode_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeException(f"Expected numeric value, got: {value!r}")
    return float(value)


@DECODERS.register(ValueType.STRING)
def _decode_string(value: Any) -> str:
    if not isinstance(value, str):
        raise DecodeException(f"Expected string value, got: {value!r}")
    return value


@DECODERS.register(ValueType.DOOR_STATE)
def _decode_door_state(value: Any) -> DoorState:
    return DoorState.from_value(value)


def _infer_value_type(value: Any) -> ValueType | None:
    """Return the value type for attributes without a known type."""
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    if isinstance(value, str):
        return ValueType.STRING
    return None


@dataclass(frozen=True)
class AttributeUpdate:
    """A single fact about a device component, from a poll or the websocket."""

    device_id: str
    component: str
    attribute: str
    value_type: ValueType
    value: AttributeValue
    last_set: int = 0
    """Time the value was last set by the device, as reported by the service."""

    @property
    def key(self) -> str:
        """Return the wire key for this attribute e.g. `garageDoor_7.doorState`."""
        return f"{self.component}.{self.attribute}"


def decode_attribute(
    device_id: str, component: str, attribute: str, raw: Any
) -> AttributeUpdate | None:
    """Decode a raw `{value, lastSet}` object into an AttributeUpdate.

    Attributes with a known type must decode cleanly or a DecodeException is
    raised. Unknown attributes are decoded by their JSON type and None is
    returned for values that are not a boolean, number or string.
    """
    if not isinstance(raw, Mapping) or VALUE not in raw:
        raise DecodeException(f"Attribute {component}.{attribute} has no value")
    value = raw[VALUE]
    last_set = raw.get(LAST_SET) or 0
    if isinstance(last_set, bool) or not isinstance(last_set, (int, float)):
        raise DecodeException(f"Invalid lastSet for {component}.{attribute}")
    value_type = ATTRIBUTE_TYPES.get(attribute)
    if value_type is None:
        if (value_type := _infer_value_type(value)) is None:
            _LOGGER.debug("Skipping attribute %s.%s", component, attribute)
            return None
    decoder: Callable[[Any], AttributeValue] = DECODERS[value_type]
    return AttributeUpdate(
        device_id=device_id,
        component=component,
        attribute=attribute,
        value_type=value_type,
        value=decoder(value),
        last_set=int(last_set),
    )


@dataclass
class DeviceMetaData(DataClassDictMixin):
    """Descriptive information about a device."""

    name: str = ""
    socket_id: str = field(metadata=field_options(alias="socketId"), default="")
    version: int = 0

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class DeviceSummary(DataClassDictMixin):
    """A device as returned by the device list API."""

    device_id: str = field(metadata=field_options(alias="varName"))
    """Stable identifier of the device, used as the websocket topic."""

    device_type_ids: list[str] = field(
        metadata=field_options(alias="deviceTypeIds"), default_factory=list
    )
    meta_data: DeviceMetaData = field(
        metadata=field_options(alias="metaData"), default_factory=DeviceMetaData
    )

    @property
    def name(self) -> str:
        """Return the user assigned name of the device."""
        return self.meta_data.name

    @property
    def is_garage_door_opener(self) -> bool:
        """Return True if this device is a garage door opener master unit."""
        return GARAGE_DOOR_OPENER_TYPE in self.device_type_ids

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> DeviceSummary:
        """Parse a device summary, raising DecodeException on failure."""
        try:
            return cls.from_dict(dict(data))
        except (LookupError, ValueError, TypeError) as err:
            raise DecodeException(f"Invalid device in response: {err}") from err

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class DeviceSnapshot:
    """Full attribute state of a device as returned by the device API."""

    summary: DeviceSummary
    attributes: dict[str, dict[str, AttributeUpdate]] = field(default_factory=dict)
    """Attribute updates keyed by component then attribute name."""

    @property
    def device_id(self) -> str:
        """Return the id of the device."""
        return self.summary.device_id

    def get(self, component: str, attribute: str) -> AttributeUpdate | None:
        """Return a single attribute if present."""
        return self.attributes.get(component, {}).get(attribute)

    @property
    def updates(self) -> list[AttributeUpdate]:
        """Return all attributes, flattened in component order."""
        return [
            update
            for component in self.attributes.values()
            for update in component.values()
        ]

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> DeviceSnapshot:
        """Parse the detailed device response for a single device."""
        summary = DeviceSummary.from_api(data)
        raw_attributes = data.get(ATTRIBUTES) or {}
        if not isinstance(raw_attributes, Mapping):
            raise DecodeException("Device attributes must be an object")
        attributes: dict[str, dict[str, AttributeUpdate]] = {}
        for component, values in raw_attributes.items():
            if not isinstance(values, Mapping):
                _LOGGER.debug("Skipping component %s", component)
                continue
            decoded: dict[str, AttributeUpdate] = {}
            for attribute, raw in values.items():
                if not isinstance(raw, Mapping) or VALUE not in raw:
                    continue
                if update := decode_attribute(
                    summary.device_id, component, attribute, raw
                ):
                    decoded[attribute] = update
            attributes[component] = decoded
        return cls(summary=summary, attributes=attributes)
