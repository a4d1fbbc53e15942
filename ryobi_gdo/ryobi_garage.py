#!/usr/bin/python3

"""Command line tool for Ryobi garage door openers.

Credentials are the same as used for the Ryobi mobile app and may be
passed as flags or with the RYOBI_USERNAME and RYOBI_PASSWORD environment
variables.

Once configured, you can run commands like:

$ ryobi_garage list_devices
$ ryobi_garage get_device <device_id>
$ ryobi_garage door <device_id> open
$ ryobi_garage light <device_id> off
$ ryobi_garage subscribe <device_id>
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any

import yaml
from aiohttp import ClientSession

from .account_manager import AccountManager
from .auth import LoginAuth
from .exceptions import (
    ApiException,
    ConfigurationException,
    UnauthenticatedException,
)
from .model import AttributeUpdate, DeviceSnapshot, DoorState

# Define command line arguments
parser = argparse.ArgumentParser(
    description="Command line tool for Ryobi garage door openers"
)
parser.add_argument(
    "--username",
    help="Account username (email address)",
    default=os.environ.get("RYOBI_USERNAME"),
)
parser.add_argument(
    "--password",
    help="Account password",
    default=os.environ.get("RYOBI_PASSWORD"),
)
parser.add_argument(
    "-v", "--verbose", help="Increase output verbosity", action="store_true"
)
parser.add_argument(
    "--output_type",
    type=str,
    choices=["json", "yaml"],
    help="Change the output type from json or yaml (default).",
    default="yaml",
)

cmd_parser = parser.add_subparsers(dest="command", required=True)
list_devices_parser = cmd_parser.add_parser(
    "list_devices", description="List all garage door openers on the account."
)
get_device_parser = cmd_parser.add_parser(
    "get_device", description="Print the current state of a device."
)
get_device_parser.add_argument("device_id")
door_parser = cmd_parser.add_parser("door", description="Open or close the door.")
door_parser.add_argument("device_id")
door_parser.add_argument("action", choices=["open", "close"])
light_parser = cmd_parser.add_parser(
    "light", description="Turn the garage light on or off."
)
light_parser.add_argument("device_id")
light_parser.add_argument("action", choices=["on", "off"])
subscribe_parser = cmd_parser.add_parser(
    "subscribe", description="Print attribute updates for devices as they arrive."
)
subscribe_parser.add_argument("device_id", nargs="+")


def PrintData(data: Any, output_type: str) -> None:
    """Print data in the requested output format."""
    if output_type == "json":
        print(json.dumps(data))
    else:
        print(yaml.dump(data))


def SnapshotData(snapshot: DeviceSnapshot) -> dict[str, Any]:
    """Return a printable form of a device snapshot."""
    return {
        "device": snapshot.summary.to_dict(),
        "attributes": {
            component: {
                attribute: UpdateData(update) for attribute, update in values.items()
            }
            for component, values in snapshot.attributes.items()
        },
    }


def UpdateData(update: AttributeUpdate) -> dict[str, Any]:
    """Return a printable form of an attribute update."""
    value: Any = update.value
    if isinstance(update.value, DoorState):
        value = update.value.name
    return {"value": value, "lastSet": update.last_set}


class SubscribeCallback:
    """Print each attribute update."""

    def __init__(self, output_type: str) -> None:
        """Initialize SubscribeCallback."""
        self._output_type = output_type

    async def async_handle_update(self, update: AttributeUpdate) -> None:
        """Handle an AttributeUpdate."""
        PrintData(
            {"device_id": update.device_id, update.key: UpdateData(update)},
            self._output_type,
        )


async def RunTool(args: argparse.Namespace) -> int:
    """Run the command."""
    async with ClientSession() as client:
        auth = LoginAuth(client, args.username, args.password)
        account = AccountManager(auth)
        try:
            await account.async_login()
        except ConfigurationException as err:
            logging.error("Unable to log in: %s", err)
            return 1

        if args.command == "list_devices":
            for device in await account.async_discover_garage_doors():
                PrintData(device.to_dict(), args.output_type)
            return 0

        if args.command == "get_device":
            snapshot = await account.async_get_device(args.device_id)
            if snapshot is None:
                logging.error("Unable to get device %s", args.device_id)
                return 1
            PrintData(SnapshotData(snapshot), args.output_type)
            return 0

        if args.command == "door":
            success = await account.async_update_door_state(
                args.device_id, args.action == "open"
            )
            await account.async_close()
            return 0 if success else 1

        if args.command == "light":
            success = await account.async_update_light_state(
                args.device_id, args.action == "on"
            )
            await account.async_close()
            return 0 if success else 1

        if args.command == "subscribe":
            callback = SubscribeCallback(args.output_type)
            for device_id in args.device_id:
                await account.async_add_listener(
                    device_id, callback.async_handle_update
                )
            try:
                while True:
                    # Opens the session if needed and subscribes the devices
                    try:
                        await account.session_supplier.async_get()
                    except (ApiException, UnauthenticatedException) as err:
                        logging.warning("Unable to connect, will retry: %s", err)
                    await asyncio.sleep(10)
            finally:
                await account.async_close()
    return 0


def main() -> None:
    """Ryobi garage door command line tool."""
    args: argparse.Namespace = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    if not args.username or not args.password:
        parser.error("--username and --password are required")
    try:
        sys.exit(asyncio.run(RunTool(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
