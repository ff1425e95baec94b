"""Expose Microsoft Graph client wrappers."""

from .errors import (
    ApiError,
    AuthError,
    ConfigError,
    GraphError,
    PaginationLimitError,
    ParseError,
    UploadTooLargeError,
)
from .graph import GraphClient, resolve_url
from .graph_auth import (
    GraphEndpoint,
    GraphOAuthClient,
    OAuthApp,
    OAuthStateEncoder,
    graph_endpoint,
)

__all__ = [
    "ApiError",
    "AuthError",
    "ConfigError",
    "GraphClient",
    "GraphEndpoint",
    "GraphError",
    "GraphOAuthClient",
    "OAuthApp",
    "OAuthStateEncoder",
    "PaginationLimitError",
    "ParseError",
    "UploadTooLargeError",
    "graph_endpoint",
    "resolve_url",
]
