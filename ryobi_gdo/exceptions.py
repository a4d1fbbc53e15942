"""Library for exceptions using the Ryobi garage door API and websocket."""


class RyobiException(Exception):
    """Base class for all client exceptions."""


class ApiException(RyobiException):
    """Raised during problems talking to the API or the websocket."""


class AuthException(ApiException):
    """Raised due to auth problems talking to API or websocket."""


class ApiForbiddenException(AuthException):
    """Raised due to permission errors talking to API."""


class UnauthenticatedException(RyobiException):
    """Raised when sending on a websocket that is not authenticated."""


class DecodeException(RyobiException):
    """Raised when a payload from the API or websocket can't be decoded."""


class ConfigurationException(RyobiException):
    """Raised due to misconfiguration problems such as invalid credentials."""
