"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_graph_client,
    get_graph_endpoint,
    get_graph_oauth_client,
    get_graph_session,
    get_oauth_app,
    get_oauth_state_encoder,
    get_picker_options,
    get_picker_selection_store,
    get_redirect_gate,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
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
