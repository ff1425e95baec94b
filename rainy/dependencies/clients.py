"""
Factory functions to provide the Graph session and clients as FastAPI dependencies.

The web surface serves one signed-in user per process, so the session and the
clients built on it are process-wide singletons.
"""

import secrets
from functools import lru_cache

from rainy.clients import (
    GraphClient,
    GraphEndpoint,
    GraphOAuthClient,
    OAuthApp,
    OAuthStateEncoder,
    graph_endpoint,
)
from rainy.core.config import get_settings
from rainy.services import GraphSession
from rainy.web.gate import RedirectGate
from rainy.web.picker import PickerOptions, PickerSelectionStore


@lru_cache()
def get_oauth_app() -> OAuthApp:
    """Build the registered application from settings."""
    graph = get_settings().graph
    return OAuthApp(
        client_id=graph.client_id,
        redirect_uri=graph.redirect_uri,
        client_secret=graph.client_secret,
    )


@lru_cache()
def get_graph_endpoint() -> GraphEndpoint:
    """Provide the identity platform endpoints for the configured tenant."""
    return graph_endpoint(get_settings().graph.tenant)


@lru_cache()
def get_graph_oauth_client() -> GraphOAuthClient:
    """Create a singleton OAuth client for the token endpoint."""
    return GraphOAuthClient(get_oauth_app(), get_graph_endpoint())


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state signer; the key is random when none is configured."""
    oauth = get_settings().oauth
    secret = oauth.state_secret or secrets.token_urlsafe(32)
    return OAuthStateEncoder(secret_key=secret, ttl_seconds=oauth.state_ttl_seconds)


@lru_cache()
def get_graph_session() -> GraphSession:
    """Provide the process-wide Graph session."""
    return GraphSession()


@lru_cache()
def get_graph_client() -> GraphClient:
    """Provide a Graph client bound to the process-wide session."""
    graph = get_settings().graph
    return GraphClient(
        get_graph_session(),
        api_version=graph.api_version,
        timeout=graph.timeout_seconds,
        max_pages=graph.search_max_pages,
    )


@lru_cache()
def get_redirect_gate() -> RedirectGate:
    """Provide the login redirect gate for browser pages."""
    return RedirectGate(
        get_graph_oauth_client(),
        scope=get_settings().graph.scope,
        state_encoder=get_oauth_state_encoder(),
    )


def get_picker_options() -> PickerOptions:
    """Picker defaults for the configured application."""
    settings = get_settings()
    return PickerOptions(
        client_id=settings.graph.client_id,
        endpoint_hint=settings.picker.endpoint_hint,
        sdk=settings.picker.sdk_version,
    )


@lru_cache()
def get_picker_selection_store() -> PickerSelectionStore:
    """Provide the in-memory store of picker selections."""
    return PickerSelectionStore()


__all__ = [
    "get_graph_client",
    "get_graph_endpoint",
    "get_graph_oauth_client",
    "get_graph_session",
    "get_oauth_app",
    "get_oauth_state_encoder",
    "get_picker_options",
    "get_picker_selection_store",
    "get_redirect_gate",
]
