"""Library for Ryobi garage door openers connected to the Ryobi cloud service.

The primary components in this library are:
- `auth`: `LoginAuth` obtains an api key from a username and password, or you
  can implement `AbstractAuth` to provide one.
- `ryobi_api`: Lists the devices on an account and fetches device state.
- `streaming_session`: A single authenticated websocket connection used to
  send commands and receive attribute notifications.
- `account_manager`: Owns the websocket session, retries failed calls with a
  fresh api key and session, and delivers updates to listeners.
- `garage_door`: Holds the current state of a garage door opener, kept up to
  date by push notifications and polling.

Example usage:
```
    async with aiohttp.ClientSession() as websession:
        auth = LoginAuth(websession, USERNAME, PASSWORD)
        account = AccountManager(auth)
        await account.async_login()

        for device in await account.async_discover_garage_doors():
            opener = GarageDoorOpener(account, device.device_id)
            await opener.async_start()
            await opener.async_open()
```
"""

__all__ = [
    "account_manager",
    "auth",
    "diagnostics",
    "event",
    "exceptions",
    "garage_door",
    "listener_registry",
    "messages",
    "model",
    "poll_scheduler",
    "retry",
    "ryobi_api",
    "session_supplier",
    "streaming_session",
]
