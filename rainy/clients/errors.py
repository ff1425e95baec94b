"""Exceptions raised by the Microsoft Graph client and login flow."""

from __future__ import annotations

from typing import Sequence


class GraphError(Exception):
    """Base class for every error raised by this package."""


class AuthError(GraphError):
    """Raised when the identity platform answers a token request with an error."""

    def __init__(
        self,
        code: str,
        error_codes: Sequence[int | str] = (),
        description: str = "",
    ) -> None:
        self.code = code
        self.error_codes = list(error_codes)
        self.description = description
        codes = ", ".join(str(item) for item in self.error_codes)
        super().__init__(f"{code} ({codes})\n{description}")


class ConfigError(GraphError):
    """Raised when an authenticated call is attempted without a stored token."""


class ApiError(GraphError):
    """Raised for any Graph response with a status code of 300 or above."""

    def __init__(self, code: str, status_code: int, message: str) -> None:
        self.code = code
        self.status_code = status_code
        self.message = message
        super().__init__(f"{code} ({status_code})\n{message}")


class UploadTooLargeError(GraphError):
    """Raised when a file is too large for the simple upload API."""

    def __init__(self, path: str, size: int, limit: int) -> None:
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"{path} too large for simple upload ({size} > {limit} bytes)")


class ParseError(GraphError):
    """Raised when a response body cannot be decoded or a table cannot be read."""


class PaginationLimitError(GraphError):
    """Raised when a search keeps returning continuation links past the page cap."""


__all__ = [
    "ApiError",
    "AuthError",
    "ConfigError",
    "GraphError",
    "PaginationLimitError",
    "ParseError",
    "UploadTooLargeError",
]
