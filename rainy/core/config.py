"""
Application configuration models and helpers.

Centralizes settings management so the Graph client, the login flow and the
web surface share one configuration object.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class GraphSettings(BaseSettings):
    """Configuration required for interacting with Microsoft Graph."""

    model_config = _ENV_CONFIG

    client_id: str = Field(..., validation_alias="GRAPH_CLIENT_ID")
    client_secret: Optional[str] = Field(
        None,
        validation_alias="GRAPH_CLIENT_SECRET",
        description="Only needed for confidential (web) app registrations.",
    )
    redirect_uri: str = Field("http://localhost:8000/", validation_alias="GRAPH_REDIRECT_URI")
    tenant: str = Field(
        "common",
        validation_alias="GRAPH_TENANT",
        description='Tenant such as "contoso.onmicrosoft.com"; "common" for multi-tenant apps.',
    )
    scope: str = Field("Files.ReadWrite.All", validation_alias="GRAPH_SCOPE")
    api_version: int = Field(
        1,
        validation_alias="GRAPH_API_VERSION",
        description="Graph API version. 0 selects the beta API.",
    )
    timeout_seconds: float = Field(30.0, validation_alias="GRAPH_TIMEOUT_SECONDS")
    search_max_pages: int = Field(
        1000,
        validation_alias="GRAPH_SEARCH_MAX_PAGES",
        description="Upper bound on continuation links followed by a single search.",
    )

    @field_validator("api_version")
    @classmethod
    def _non_negative_version(cls, value: int) -> int:
        if value < 0:
            raise ValueError("api_version must be 0 (beta) or a positive version number")
        return value


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _ENV_CONFIG

    state_secret: Optional[str] = Field(
        None,
        validation_alias="OAUTH_STATE_SECRET",
        description="Key used to sign OAuth state values. Random per process when omitted.",
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")


class PickerSettings(BaseSettings):
    """Defaults for the embedded OneDrive file picker."""

    model_config = _ENV_CONFIG

    endpoint_hint: str = Field("api.onedrive.com", validation_alias="PICKER_ENDPOINT_HINT")
    sdk_version: float = Field(7.2, validation_alias="PICKER_SDK_VERSION")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    graph: GraphSettings = Field(default_factory=GraphSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    picker: PickerSettings = Field(default_factory=PickerSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GraphSettings",
    "OAuthSettings",
    "PickerSettings",
    "get_settings",
]
