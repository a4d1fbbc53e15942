"""JSON-RPC request frames sent over the websocket."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from mashumaro import DataClassDictMixin
from mashumaro.config import TO_DICT_ADD_OMIT_NONE_FLAG, BaseConfig

__all__ = [
    "DoorCommand",
    "WebSocketRequest",
    "auth_request",
    "door_command_request",
    "light_command_request",
    "subscribe_request",
]

JSONRPC_VERSION = "2.0"

AUTH_METHOD = "srvWebSocketAuth"
AUTH_REQUEST_ID = 3
MODULE_COMMAND_METHOD = "gdoModuleCommand"
SUBSCRIBE_METHOD = "wskSubscribe"
NOTIFICATION_TOPIC_SUFFIX = ".wskAttributeUpdateNtfy"

# Routing for commands to the garage door module of the opener
MSG_TYPE = 16
MODULE_TYPE = 5
PORT_ID = 7

DOOR_COMMAND = "doorCommand"
LIGHT_STATE = "lightState"


class DoorCommand(enum.IntEnum):
    """Value of the door command sent to the opener."""

    CLOSE = 0
    OPEN = 1


@dataclass
class WebSocketRequest(DataClassDictMixin):
    """A JSON-RPC request frame."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)
    jsonrpc: str = JSONRPC_VERSION
    id: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return the frame as it is sent on the wire."""
        return self.to_dict(omit_none=True)

    class Config(BaseConfig):
        code_generation_options = [TO_DICT_ADD_OMIT_NONE_FLAG]


def auth_request(username: str, api_key: str) -> WebSocketRequest:
    """Return the frame sent first on every new connection."""
    return WebSocketRequest(
        method=AUTH_METHOD,
        params={"varName": username, "apiKey": api_key},
        id=AUTH_REQUEST_ID,
    )


def _module_command(device_id: str, module_msg: dict[str, Any]) -> WebSocketRequest:
    return WebSocketRequest(
        method=MODULE_COMMAND_METHOD,
        params={
            "msgType": MSG_TYPE,
            "moduleType": MODULE_TYPE,
            "portId": PORT_ID,
            "topic": device_id,
            "moduleMsg": module_msg,
        },
    )


def door_command_request(device_id: str, command: DoorCommand) -> WebSocketRequest:
    """Return a frame that opens or closes the garage door."""
    return _module_command(device_id, {DOOR_COMMAND: int(command)})


def light_command_request(device_id: str, light_on: bool) -> WebSocketRequest:
    """Return a frame that turns the garage light on or off."""
    return _module_command(device_id, {LIGHT_STATE: light_on})


def subscribe_request(device_id: str) -> WebSocketRequest:
    """Return a frame that subscribes to attribute notifications for a device."""
    return WebSocketRequest(
        method=SUBSCRIBE_METHOD,
        params={"topic": f"{device_id}{NOTIFICATION_TOPIC_SUFFIX}"},
    )
