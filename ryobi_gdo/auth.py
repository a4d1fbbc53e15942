"""Authentication library for the Ryobi garage door API.

An implementation of `AbstractAuth` provides the api key used for all
authenticated calls to the API and for the websocket handshake. The
`LoginAuth` implementation obtains the api key by logging in with a
username and password, caches it, and logs in again after the key has
been invalidated.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from asyncio import TimeoutError
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

import aiohttp
from aiohttp.client_exceptions import ClientError
from mashumaro import field_options
from mashumaro.mixins.json import DataClassJSONMixin

from .diagnostics import AUTH_DIAGNOSTICS as DIAGNOSTICS
from .exceptions import (
    ApiException,
    ApiForbiddenException,
    AuthException,
)

_LOGGER = logging.getLogger(__name__)

__all__ = ["AbstractAuth", "LoginAuth"]

API_URL = "https://tti.tiwiconnect.com"
LOGIN_URL = "api/login"
HTTP_TIMEOUT_SECONDS = 10

AUTHORIZATION_HEADER = "Authorization"
TRANSFORM_HEADER = "x-tc-transform"
TRANSFORM = "tti-app"
TRANSFORM_VERSION_HEADER = "x-tc-transformversion"
TRANSFORM_VERSION = "0.2"


@dataclass
class ErrorResponse(DataClassJSONMixin):
    """A response message that contains an error message."""

    result: str | None = None
    message: str | None = None

    def __str__(self) -> str:
        return ": ".join(msg for msg in (self.result, self.message) if msg)


@dataclass
class LoginAuthResult(DataClassJSONMixin):
    """Auth details in the login response."""

    api_key: str = field(metadata=field_options(alias="apiKey"))


@dataclass
class LoginResult(DataClassJSONMixin):
    """Account details in the login response."""

    auth: LoginAuthResult


@dataclass
class LoginResponse(DataClassJSONMixin):
    """Response from the login API."""

    result: LoginResult


class AbstractAuth(ABC):
    """Abstract class to make authenticated requests."""

    def __init__(self, websession: aiohttp.ClientSession, host: str = API_URL):
        """Initialize the AbstractAuth."""
        self._websession = websession
        self._host = host

    @property
    @abstractmethod
    def username(self) -> str:
        """Return the account name sent in the websocket handshake."""

    @abstractmethod
    async def async_get_api_key(self) -> str:
        """Return a valid api key."""

    @abstractmethod
    def invalidate(self) -> None:
        """Discard the current api key so the next call obtains a new one."""

    def _url(self, url: str) -> str:
        if not (
            url.startswith("http://")
            or url.startswith("https://")
            or url.startswith("ws://")
            or url.startswith("wss://")
        ):
            url = f"{self._host}/{url}"
        return url

    async def request(
        self,
        method: str,
        url: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> aiohttp.ClientResponse:
        """Make a request, adding the api key unless authenticated is False."""
        headers = kwargs.get("headers")

        if headers is None:
            headers = {}
        else:
            headers = dict(headers)
            del kwargs["headers"]
        headers.setdefault(TRANSFORM_HEADER, TRANSFORM)
        if authenticated and AUTHORIZATION_HEADER not in headers:
            api_key = await self.async_get_api_key()
            headers[AUTHORIZATION_HEADER] = f"Bearer {api_key}"
        if "timeout" not in kwargs:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=HTTP_TIMEOUT_SECONDS)
        url = self._url(url)
        _LOGGER.debug("request[%s]=%s", method, url)
        try:
            return await self._request(method, url, headers=headers, **kwargs)
        except (ClientError, TimeoutError) as err:
            raise ApiException(f"Error connecting to API: {err}") from err

    async def _request(
        self, method: str, url: str, headers: dict[str, str], **kwargs: Any
    ) -> aiohttp.ClientResponse:
        return await self._websession.request(method, url, **kwargs, headers=headers)

    async def get(self, url: str, **kwargs: Any) -> aiohttp.ClientResponse:
        """Make a get request."""
        response = await self.request("get", url, **kwargs)
        return await AbstractAuth._raise_for_status(response)

    async def get_json(self, url: str, **kwargs: Any) -> dict[str, Any]:
        """Make a get request and return json response."""
        resp = await self.get(url, **kwargs)
        try:
            result = await resp.json()
        except (ClientError, ValueError) as err:
            raise ApiException("Server returned malformed response") from err
        if not isinstance(result, dict):
            raise ApiException("Server returned malformed response: %s" % result)
        return result

    async def ws_connect(
        self, url: str, **kwargs: Any
    ) -> aiohttp.ClientWebSocketResponse:
        """Open a websocket connection using the shared client session."""
        url = self._url(url)
        _LOGGER.debug("ws_connect=%s", url)
        try:
            return await self._websession.ws_connect(url, **kwargs)
        except (ClientError, TimeoutError) as err:
            raise ApiException(f"Error connecting to websocket: {err}") from err

    @classmethod
    async def _raise_for_status(
        cls, resp: aiohttp.ClientResponse
    ) -> aiohttp.ClientResponse:
        """Raise exceptions on failure methods."""
        error_detail = await cls._error_detail(resp)
        try:
            resp.raise_for_status()
        except aiohttp.ClientResponseError as err:
            error_message = f"{err.message} response from API ({resp.status})"
            if error_detail:
                error_message += f": {error_detail}"
            if err.status == HTTPStatus.FORBIDDEN:
                raise ApiForbiddenException(error_message) from err
            if err.status == HTTPStatus.UNAUTHORIZED:
                raise AuthException(error_message) from err
            raise ApiException(error_message) from err
        except aiohttp.ClientError as err:
            raise ApiException(f"Error from API: {err}") from err
        return resp

    @classmethod
    async def _error_detail(cls, resp: aiohttp.ClientResponse) -> ErrorResponse | None:
        """Returns an error message from the API response."""
        if resp.status < 400:
            return None
        try:
            result = await resp.text()
        except ClientError:
            return None
        try:
            error_response = ErrorResponse.from_json(result)
        except (LookupError, ValueError, TypeError):
            return None
        return error_response if str(error_response) else None


class LoginAuth(AbstractAuth):
    """Obtains and caches an api key by logging in with a username and password.

    Concurrent callers of `async_get_api_key` share a single login request.
    """

    def __init__(
        self,
        websession: aiohttp.ClientSession,
        username: str,
        password: str,
        host: str = API_URL,
    ) -> None:
        """Initialize LoginAuth."""
        super().__init__(websession, host)
        self._username = username
        self._password = password
        self._api_key: str | None = None
        self._lock = asyncio.Lock()

    @property
    def username(self) -> str:
        return self._username

    async def async_get_api_key(self) -> str:
        """Return the cached api key, logging in if there is none."""
        if (api_key := self._api_key) is not None:
            return api_key
        async with self._lock:
            if self._api_key is None:
                self._api_key = await self._async_login()
            return self._api_key

    def invalidate(self) -> None:
        """Discard the cached api key."""
        _LOGGER.debug("Invalidating api key")
        DIAGNOSTICS.increment("invalidate")
        self._api_key = None

    async def _async_login(self) -> str:
        """Log in and return a new api key, raising AuthException on failure."""
        _LOGGER.debug("Logging in as account %s", self._username)
        DIAGNOSTICS.increment("login")
        try:
            with DIAGNOSTICS.timer("login"):
                resp = await self.request(
                    "post",
                    LOGIN_URL,
                    json={"username": self._username, "password": self._password},
                    authenticated=False,
                )
                resp = await self._raise_for_status(resp)
                body = await resp.text()
        except AuthException:
            DIAGNOSTICS.increment("login_failure")
            raise
        except (ApiException, ClientError, TimeoutError) as err:
            DIAGNOSTICS.increment("login_failure")
            raise AuthException(f"Unable to log in: {err}") from err
        try:
            login_response = LoginResponse.from_json(body)
        except (LookupError, ValueError, TypeError) as err:
            DIAGNOSTICS.increment("login_failure")
            raise AuthException("Login response did not contain an api key") from err
        _LOGGER.debug("Logged in successfully")
        return login_response.result.auth.api_key
