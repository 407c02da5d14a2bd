"""Exceptions raised by the Harper query client."""

from __future__ import annotations


class DugError(Exception):
    """Base exception for dug errors."""


class ConnectError(DugError):
    """Connecting to a Harper instance failed."""


class AuthenticationError(ConnectError):
    """Credentials were rejected (HTTP 401)."""

    def __init__(self, message: str = "Authentication failed: invalid username or password") -> None:
        super().__init__(message)


class UnreachableError(ConnectError):
    """The instance could not be reached at all."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Cannot reach Harper instance at {url} - is it running?")
        self.url = url


class NotFoundError(DugError):
    """A database or table is absent from the discovery result."""


class ResponseShapeError(DugError):
    """The server answered with a body that does not match the expected shape."""


class RequestError(DugError):
    """The request could not be sent as given (malformed URL, redirect loop)."""


class NetworkError(DugError):
    """Network-class failure: refused, reset, timed out, unreachable, aborted."""


class HarperAPIError(DugError):
    """Non-2xx response from the operations API."""

    def __init__(self, status_code: int, text: str) -> None:
        super().__init__(f"Harper API error ({status_code}): {text}")
        self.status_code = status_code
        self.text = text

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500
