"""Messages received from the websocket."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .exceptions import DecodeException
from .model import AttributeUpdate, decode_attribute

__all__ = [
    "AttributeUpdateMessage",
    "AuthorizationMessage",
    "decode_message",
]

_LOGGER = logging.getLogger(__name__)

METHOD = "method"
PARAMS = "params"
RESULT = "result"
AUTHORIZED = "authorized"
VAR_NAME = "varName"

AUTHORIZED_METHOD = "authorizedWebSocket"
ATTRIBUTE_UPDATE_METHOD = "wskAttributeUpdateNtfy"


@dataclass(frozen=True)
class AuthorizationMessage:
    """Result of the websocket authentication handshake."""

    authorized: bool


@dataclass(frozen=True)
class AttributeUpdateMessage:
    """A notification with one or more attribute changes for a device."""

    device_id: str
    updates: list[AttributeUpdate] = field(default_factory=list)


Message = AuthorizationMessage | AttributeUpdateMessage


def _parse_authorization(params: Any) -> AuthorizationMessage:
    if not isinstance(params, Mapping) or not isinstance(
        authorized := params.get(AUTHORIZED), bool
    ):
        raise DecodeException("Authorization message missing 'authorized'")
    return AuthorizationMessage(authorized=authorized)


def _parse_attribute_update(params: Any) -> AttributeUpdateMessage:
    if not isinstance(params, Mapping):
        raise DecodeException("Attribute update missing params")
    device_id = params.get(VAR_NAME)
    if not isinstance(device_id, str) or not device_id:
        raise DecodeException("Attribute update missing device id")
    updates: list[AttributeUpdate] = []
    for key, raw in params.items():
        component, sep, attribute = key.partition(".")
        if not sep or not component or not attribute:
            continue
        if update := decode_attribute(device_id, component, attribute, raw):
            updates.append(update)
    return AttributeUpdateMessage(device_id=device_id, updates=updates)


def decode_message(data: str | Mapping[str, Any]) -> Message | None:
    """Decode an inbound frame.

    Returns None for frames that are valid but not of interest, such as
    acknowledgements or methods this library does not know about. Raises
    DecodeException for frames that are malformed.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError as err:
            raise DecodeException(f"Frame is not valid JSON: {err}") from err
    if not isinstance(data, Mapping):
        raise DecodeException("Frame is not a JSON object")

    method = data.get(METHOD)
    if method == AUTHORIZED_METHOD:
        return _parse_authorization(data.get(PARAMS))
    if method == ATTRIBUTE_UPDATE_METHOD:
        return _parse_attribute_update(data.get(PARAMS))
    if method is None and isinstance(result := data.get(RESULT), Mapping):
        # Direct reply to the srvWebSocketAuth request
        if AUTHORIZED in result:
            return _parse_authorization(result)
    _LOGGER.debug("Ignoring message with method %s", method)
    return None
