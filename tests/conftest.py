"""Fixtures and libraries shared by tests."""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Generator

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from ryobi_gdo import diagnostics
from ryobi_gdo.account_manager import AccountManager
from ryobi_gdo.auth import LoginAuth
from ryobi_gdo.model import AttributeUpdate
from ryobi_gdo.retry import FixedWait, RetryPolicy

USERNAME = "user@example.com"
PASSWORD = "some-password"
FAKE_API_KEY = "api-key"
DEVICE_ID = "device-id-1"
WEBSOCKET_PATH = "api/wsrpc"

_LOGGER = logging.getLogger(__name__)


def pytest_configure(config: pytest.Config) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s:%(filename)s:%(lineno)s %(message)s",  # noqa: E501
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if config.getoption("verbose") > 0:
        logging.getLogger().setLevel(logging.DEBUG)


@pytest.fixture(name="app")
def mock_app() -> Generator[aiohttp.web.Application, None, None]:
    yield aiohttp.web.Application()


@pytest.fixture(name="server")
def mock_server(
    app: aiohttp.web.Application,
    aiohttp_server: Callable[[aiohttp.web.Application], Awaitable[TestServer]],
) -> Callable[[], Awaitable[TestServer]]:
    async def _make_server() -> TestServer:
        server = await aiohttp_server(app)
        server.skip_url_asserts = True
        assert isinstance(server, TestServer)
        return server

    return _make_server


@pytest.fixture(name="client")
def mock_client(
    server: Callable[[], Awaitable[TestServer]],
    aiohttp_client: Callable[[TestServer], Awaitable[TestClient]],
) -> Callable[[], Awaitable[TestClient]]:
    # Cache the value so that every auth shares the same test client
    cached_client: TestClient | None = None

    async def _make_client() -> TestClient:
        nonlocal cached_client
        if not cached_client:
            cached_client = await aiohttp_client(await server())
            assert isinstance(cached_client, TestClient)
        return cached_client

    return _make_client


def device_data(device_id: str = DEVICE_ID, name: str = "Garage") -> dict[str, Any]:
    """Return a device as it appears in the device list response."""
    return {
        "varName": device_id,
        "deviceTypeIds": ["gdoMasterUnit"],
        "metaData": {"name": name, "socketId": "socket-1", "version": 1},
    }


def device_attributes(
    door_state: int = 1, position: int = 100, light: bool = False
) -> dict[str, Any]:
    """Return device attributes as they appear in the device detail response."""
    return {
        "garageDoor_7": {
            "doorState": {"value": door_state, "lastSet": 100},
            "doorPosition": {"value": position, "lastSet": 100},
            "motionSensor": {"value": False, "lastSet": 100},
            "alarmState": {"value": False, "lastSet": 100},
        },
        "garageLight_7": {
            "lightState": {"value": light, "lastSet": 100},
        },
    }


class FakeRyobiService:
    """Serves the login, device and websocket endpoints."""

    def __init__(self, app: aiohttp.web.Application) -> None:
        """Initialize FakeRyobiService."""
        self.password = PASSWORD
        self.api_key = FAKE_API_KEY
        self.logins: list[dict[str, Any]] = []
        self.login_response: dict[str, Any] | None = None
        self.devices: dict[str, dict[str, Any]] = {}
        self.device_status: int | None = None
        self.request_headers: list[dict[str, str]] = []
        # None leaves the websocket waiting for authorization
        self.authorize: bool | None = True
        self.connections: list[aiohttp.web.WebSocketResponse] = []
        self.frames: list[dict[str, Any]] = []
        app.router.add_post("/api/login", self.login_handler)
        app.router.add_get("/api/devices", self.devices_handler)
        app.router.add_get("/api/devices/{device_id}", self.device_handler)
        app.router.add_get(f"/{WEBSOCKET_PATH}", self.websocket_handler)
        app.on_shutdown.append(self.async_shutdown)

    def add_device(
        self,
        device_id: str = DEVICE_ID,
        attributes: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> str:
        """Add a device to the account."""
        self.devices[device_id] = {
            **device_data(device_id, **kwargs),
            "attributes": attributes if attributes is not None else device_attributes(),
        }
        return device_id

    def revoke_api_key(self) -> None:
        """Reject the current api key until the client logs in again."""
        self.api_key = f"{FAKE_API_KEY}-revoked"

    async def login_handler(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
        assert "Authorization" not in request.headers
        assert request.headers["x-tc-transform"] == "tti-app"
        body = await request.json()
        self.logins.append(body)
        if body.get("password") != self.password:
            return aiohttp.web.json_response(
                {"result": "error", "message": "Invalid credentials"},
                status=401,
            )
        if self.login_response is not None:
            return aiohttp.web.json_response(self.login_response)
        self.api_key = f"{FAKE_API_KEY}-{len(self.logins)}"
        return aiohttp.web.json_response({"result": {"auth": {"apiKey": self.api_key}}})

    def _error_response(self) -> aiohttp.web.Response | None:
        if self.device_status is None:
            return None
        return aiohttp.web.json_response(
            {"result": "error", "message": "Device error"}, status=self.device_status
        )

    async def devices_handler(
        self, request: aiohttp.web.Request
    ) -> aiohttp.web.Response:
        if (response := self._check_auth(request)) is not None:
            return response
        return aiohttp.web.json_response(
            {
                "result": [
                    {k: v for k, v in data.items() if k != "attributes"}
                    for data in self.devices.values()
                ]
            }
        )

    async def device_handler(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
        if (response := self._check_auth(request)) is not None:
            return response
        if (data := self.devices.get(request.match_info["device_id"])) is None:
            return aiohttp.web.json_response({"result": []})
        return aiohttp.web.json_response({"result": [data]})

    def _check_auth(self, request: aiohttp.web.Request) -> aiohttp.web.Response | None:
        """Record the request and return an error response if it should fail."""
        _LOGGER.debug("Request: %s", request)
        self.request_headers.append(dict(request.headers))
        if request.headers.get("Authorization") != f"Bearer {self.api_key}":
            return aiohttp.web.json_response(
                {"result": "error", "message": "Invalid api key"}, status=401
            )
        return self._error_response()

    async def websocket_handler(
        self, request: aiohttp.web.Request
    ) -> aiohttp.web.WebSocketResponse:
        ws = aiohttp.web.WebSocketResponse()
        await ws.prepare(request)
        self.connections.append(ws)
        async for msg in ws:
            if msg.type != aiohttp.WSMsgType.TEXT:
                continue
            frame = msg.json()
            self.frames.append(frame)
            if frame.get("method") == "srvWebSocketAuth" and self.authorize is not None:
                await self.async_send_authorized(self.authorize)
        return ws

    async def async_send(self, data: dict[str, Any]) -> None:
        """Send a frame on the most recent connection."""
        await self.connections[-1].send_json(data)

    async def async_send_authorized(self, authorized: bool) -> None:
        await self.async_send(
            {
                "jsonrpc": "2.0",
                "method": "authorizedWebSocket",
                "params": {"authorized": authorized},
            }
        )

    async def async_send_notification(
        self, device_id: str, attributes: dict[str, Any]
    ) -> None:
        await self.async_send(
            {
                "jsonrpc": "2.0",
                "method": "wskAttributeUpdateNtfy",
                "params": {"varName": device_id, **attributes},
            }
        )

    async def async_wait_frames(self, count: int) -> list[dict[str, Any]]:
        """Wait until the server has received the number of frames."""
        await async_wait_for(lambda: len(self.frames) >= count)
        return self.frames

    def methods(self) -> list[str]:
        return [frame["method"] for frame in self.frames]

    async def async_shutdown(self, app: aiohttp.web.Application) -> None:
        for ws in self.connections:
            await ws.close()


@pytest.fixture(name="service")
def mock_service(app: aiohttp.web.Application) -> FakeRyobiService:
    return FakeRyobiService(app)


@pytest.fixture(name="auth_client")
def mock_auth_client(
    service: FakeRyobiService, client: Callable[[], Awaitable[TestClient]]
) -> Callable[[], Awaitable[LoginAuth]]:
    async def _make_auth() -> LoginAuth:
        test_client = await client()
        return LoginAuth(
            test_client,  # type: ignore[arg-type]
            USERNAME,
            PASSWORD,
            host="",
        )

    return _make_auth


@pytest.fixture(name="auth")
async def auth_fixture(auth_client: Callable[[], Awaitable[LoginAuth]]) -> LoginAuth:
    return await auth_client()


@pytest.fixture(name="retry_policy")
def mock_retry_policy() -> RetryPolicy:
    return RetryPolicy(wait=FixedWait(datetime.timedelta(0)))


@pytest.fixture(name="account")
async def account_fixture(
    auth: LoginAuth, retry_policy: RetryPolicy
) -> AsyncGenerator[AccountManager, None]:
    account = AccountManager(
        auth, websocket_url=WEBSOCKET_PATH, retry_policy=retry_policy
    )
    yield account
    await account.async_close()


@pytest.fixture(autouse=True)
def reset_diagnostics() -> Generator[None, None, None]:
    yield
    diagnostics.reset()


async def async_wait_for(predicate: Callable[[], bool], timeout: float = 5) -> None:
    """Wait until the predicate is true, yielding to the event loop."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


class UpdateCallback:
    """A callback that can be used in tests for assertions."""

    def __init__(self) -> None:
        """Initialize UpdateCallback."""
        self.updates: list[AttributeUpdate] = []

    async def async_handle_update(self, update: AttributeUpdate) -> None:
        self.updates.append(update)

    async def async_wait_updates(self, count: int) -> list[AttributeUpdate]:
        await async_wait_for(lambda: len(self.updates) >= count)
        return self.updates
