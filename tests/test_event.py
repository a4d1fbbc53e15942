"""Tests for decoding websocket messages."""

import json

import pytest

from ryobi_gdo.event import (
    AttributeUpdateMessage,
    AuthorizationMessage,
    decode_message,
)
from ryobi_gdo.exceptions import DecodeException
from ryobi_gdo.model import AttributeUpdate, DoorState, ValueType


def test_attribute_update() -> None:
    message = decode_message(
        json.dumps(
            {
                "method": "wskAttributeUpdateNtfy",
                "params": {
                    "varName": "D1",
                    "garageDoor_7.doorState": {"value": 1, "lastSet": 100},
                },
            }
        )
    )
    assert message == AttributeUpdateMessage(
        device_id="D1",
        updates=[
            AttributeUpdate(
                device_id="D1",
                component="garageDoor_7",
                attribute="doorState",
                value_type=ValueType.DOOR_STATE,
                value=DoorState.OPEN,
                last_set=100,
            )
        ],
    )


def test_attribute_update_multiple_attributes() -> None:
    message = decode_message(
        {
            "jsonrpc": "2.0",
            "method": "wskAttributeUpdateNtfy",
            "params": {
                "topic": "D1.wskAttributeUpdateNtfy",
                "varName": "D1",
                "id": 12,
                "garageDoor_7.doorPosition": {"value": 40, "lastSet": 200},
                "garageLight_7.lightState": {"value": True, "lastSet": 201},
            },
        }
    )
    assert isinstance(message, AttributeUpdateMessage)
    assert [(u.key, u.value, u.last_set) for u in message.updates] == [
        ("garageDoor_7.doorPosition", 40.0, 200),
        ("garageLight_7.lightState", True, 201),
    ]


def test_attribute_update_invalid_value() -> None:
    with pytest.raises(DecodeException, match="Unknown door state"):
        decode_message(
            {
                "method": "wskAttributeUpdateNtfy",
                "params": {
                    "varName": "D1",
                    "garageDoor_7.doorState": {"value": 7, "lastSet": 100},
                },
            }
        )


def test_attribute_update_missing_device() -> None:
    with pytest.raises(DecodeException, match="missing device id"):
        decode_message(
            {
                "method": "wskAttributeUpdateNtfy",
                "params": {"garageDoor_7.doorState": {"value": 1}},
            }
        )


@pytest.mark.parametrize("authorized", [True, False])
def test_authorization(authorized: bool) -> None:
    assert decode_message(
        {"method": "authorizedWebSocket", "params": {"authorized": authorized}}
    ) == AuthorizationMessage(authorized=authorized)


def test_authorization_reply() -> None:
    assert decode_message(
        {"jsonrpc": "2.0", "id": 3, "result": {"authorized": True}}
    ) == AuthorizationMessage(authorized=True)


def test_authorization_missing_result() -> None:
    with pytest.raises(DecodeException, match="missing 'authorized'"):
        decode_message({"method": "authorizedWebSocket", "params": {}})


def test_ignored_messages() -> None:
    assert decode_message({"method": "wskRegisterTopics", "params": {}}) is None
    assert decode_message({"jsonrpc": "2.0", "id": 4, "result": "ok"}) is None


@pytest.mark.parametrize("data", ["not json", "[1, 2]", '"string"'])
def test_malformed_frame(data: str) -> None:
    with pytest.raises(DecodeException):
        decode_message(data)
