"""A single authenticated websocket connection to the Ryobi service.

The session sends an authentication frame as soon as the connection is
open. The service confirms authentication asynchronously with an
`authorizedWebSocket` message, so any request sent before that point waits
on a one-shot future that is resolved when the confirmation arrives, when
authorization is rejected, or when the connection closes.

A session is never reused after it closes: a new instance must be created
to reconnect.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable

import aiohttp
from aiohttp.client_exceptions import ClientError

from .auth import AbstractAuth
from .diagnostics import SESSION_DIAGNOSTICS as DIAGNOSTICS
from .event import AttributeUpdateMessage, AuthorizationMessage, decode_message
from .exceptions import (
    ApiException,
    AuthException,
    DecodeException,
    UnauthenticatedException,
)
from .messages import WebSocketRequest, auth_request, subscribe_request

__all__ = [
    "SessionState",
    "StreamingSession",
]

_LOGGER = logging.getLogger(__name__)

WEBSOCKET_URL = "wss://tti.tiwiconnect.com/api/wsrpc"
CONNECT_TIMEOUT_SECONDS = 10.0
AUTH_TIMEOUT_SECONDS = 10.0
HEARTBEAT_SECONDS = 30.0
MAX_MESSAGE_SIZE = 64 * 1024

MessageCallback = Callable[[AttributeUpdateMessage], Awaitable[None]]
ErrorCallback = Callable[["StreamingSession", Exception | None], Awaitable[None]]


class SessionState(enum.StrEnum):
    """Lifecycle of a streaming session."""

    CONNECTING = "connecting"
    AUTH_PENDING = "auth_pending"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class StreamingSession:
    """Owns one websocket connection and its authentication state."""

    def __init__(
        self,
        auth: AbstractAuth,
        message_callback: MessageCallback,
        error_callback: ErrorCallback | None = None,
        url: str = WEBSOCKET_URL,
    ) -> None:
        """Initialize StreamingSession, which must happen inside the event loop."""
        self._auth = auth
        self._message_callback = message_callback
        self._error_callback = error_callback
        self._url = url
        self._state = SessionState.CONNECTING
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._authorized: asyncio.Future[bool] = (
            asyncio.get_running_loop().create_future()
        )
        self._closed = asyncio.Event()

    @property
    def state(self) -> SessionState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def authenticated(self) -> bool:
        """Return True if requests may be sent on this session."""
        return self._state == SessionState.AUTHENTICATED

    @property
    def closed(self) -> bool:
        """Return True once the session has closed."""
        return self._state == SessionState.CLOSED

    async def async_connect(self) -> None:
        """Open the connection and send the authentication frame.

        This does not wait for authentication to be confirmed; requests sent
        with `async_send_message` wait for that.
        """
        if self._state != SessionState.CONNECTING:
            raise ApiException(f"Session cannot connect in state {self._state}")
        DIAGNOSTICS.increment("connect")
        try:
            api_key = await self._auth.async_get_api_key()
            async with asyncio.timeout(CONNECT_TIMEOUT_SECONDS):
                self._ws = await self._auth.ws_connect(
                    self._url,
                    heartbeat=HEARTBEAT_SECONDS,
                    max_msg_size=MAX_MESSAGE_SIZE,
                )
            _LOGGER.debug("Websocket connected, sending authentication")
            self._state = SessionState.AUTH_PENDING
            await self._ws.send_json(
                auth_request(self._auth.username, api_key).as_dict()
            )
        except ApiException as err:
            DIAGNOSTICS.increment("connect_failure")
            await self._async_set_closed(err)
            raise
        except (ClientError, ConnectionError, TimeoutError) as err:
            DIAGNOSTICS.increment("connect_failure")
            if self._ws is not None:
                await self._ws.close()
            await self._async_set_closed(err)
            raise ApiException(f"Error opening websocket: {err}") from err
        self._reader_task = asyncio.create_task(self._async_run())

    async def async_wait_authenticated(self, timeout: float | None = None) -> None:
        """Wait for the handshake to complete.

        Raises UnauthenticatedException if the timeout expires, authorization
        was rejected, or the session closed.
        """
        if self._state == SessionState.AUTHENTICATED:
            return
        try:
            async with asyncio.timeout(
                AUTH_TIMEOUT_SECONDS if timeout is None else timeout
            ):
                authorized = await asyncio.shield(self._authorized)
        except TimeoutError as err:
            DIAGNOSTICS.increment("auth_timeout")
            raise UnauthenticatedException(
                "Timed out waiting to authenticate"
            ) from err
        if not authorized or self._state != SessionState.AUTHENTICATED:
            raise UnauthenticatedException(
                "Lost authentication status; a new session is required"
            )

    async def async_send_message(self, request: WebSocketRequest) -> None:
        """Send a request once the session is authenticated."""
        await self.async_wait_authenticated()
        if self._ws is None or self._ws.closed:
            raise UnauthenticatedException("Websocket is not connected")
        _LOGGER.debug("Sending %s", request.method)
        try:
            await self._ws.send_json(request.as_dict())
        except (ClientError, ConnectionError) as err:
            DIAGNOSTICS.increment("send_failure")
            raise ApiException(f"Error sending {request.method}: {err}") from err
        DIAGNOSTICS.increment("send")

    async def async_subscribe_device(self, device_id: str) -> None:
        """Subscribe to attribute notifications for the device."""
        await self.async_send_message(subscribe_request(device_id))
        _LOGGER.info("Subscribed to notifications for device %s", device_id)

    async def async_close(self) -> None:
        """Close the connection and release anyone waiting on authentication."""
        if self._state == SessionState.CLOSED:
            return
        _LOGGER.debug("Closing websocket session")
        await self._async_set_closed(None)
        if self._ws is not None:
            await self._ws.close()
        if self._reader_task is not None and self._reader_task is not (
            asyncio.current_task()
        ):
            self._reader_task.cancel()

    async def async_wait_closed(self) -> None:
        """Wait until the session has closed."""
        await self._closed.wait()

    async def _async_run(self) -> None:
        """Read frames until the connection closes."""
        if self._ws is None:
            return
        error: Exception | None = None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._async_handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = ApiException(f"Websocket error: {self._ws.exception()}")
                    break
                elif msg.type in (
                    aiohttp.WSMsgType.CLOSE,
                    aiohttp.WSMsgType.CLOSING,
                    aiohttp.WSMsgType.CLOSED,
                ):
                    break
        except asyncio.CancelledError:
            _LOGGER.debug("Websocket reader cancelled")
            raise
        except (ClientError, ConnectionError) as err:
            error = ApiException(f"Websocket connection lost: {err}")
        finally:
            if self._state != SessionState.CLOSED:
                _LOGGER.info("Websocket closed (code=%s)", self._ws.close_code)
                if error is None and self._state != SessionState.AUTHENTICATED:
                    error = ApiException("Websocket closed before authentication")
                await self._async_set_closed(error)

    async def _async_handle_frame(self, data: str) -> None:
        """Process a single frame; a bad frame never ends the session."""
        DIAGNOSTICS.increment("message")
        try:
            message = decode_message(data)
        except DecodeException as err:
            DIAGNOSTICS.increment("decode_error")
            _LOGGER.warning("Dropping websocket message that failed to decode: %s", err)
            return
        if isinstance(message, AuthorizationMessage):
            await self._async_handle_authorization(message)
        elif isinstance(message, AttributeUpdateMessage):
            try:
                await self._message_callback(message)
            except Exception as err:  # pylint: disable=broad-except
                DIAGNOSTICS.increment("callback_exception")
                _LOGGER.info("Uncaught error while processing message: %s", err)

    async def _async_handle_authorization(self, message: AuthorizationMessage) -> None:
        if self._state != SessionState.AUTH_PENDING:
            _LOGGER.debug("Ignoring authorization in state %s", self._state)
            return
        if message.authorized:
            DIAGNOSTICS.increment("authorized")
            _LOGGER.debug("Successfully authenticated")
            self._state = SessionState.AUTHENTICATED
            self._authorized.set_result(True)
            return
        DIAGNOSTICS.increment("auth_rejected")
        _LOGGER.error("Websocket authentication was rejected")
        if self._ws is not None:
            await self._ws.close()
        await self._async_set_closed(AuthException("Websocket authentication rejected"))

    async def _async_set_closed(self, error: Exception | None) -> None:
        """Transition to CLOSED exactly once and notify the owner."""
        if self._state == SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        DIAGNOSTICS.increment("closed")
        if not self._authorized.done():
            self._authorized.set_result(False)
        self._closed.set()
        if self._error_callback is not None:
            await self._error_callback(self, error)
