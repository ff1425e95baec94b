"""
Token storage and the login flow for Microsoft Graph.

A :class:`GraphSession` is owned by the hosting application and passed to
every authenticated call. It holds at most one token, which each login
replaces wholesale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from rainy.clients.errors import AuthError, ConfigError
from rainy.clients.graph_auth import (
    GraphEndpoint,
    GraphOAuthClient,
    OAuthApp,
    graph_endpoint,
    raise_for_token_error,
)

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "Files.ReadWrite.All"


@dataclass(frozen=True)
class GraphToken:
    """An access credential issued by the token endpoint."""

    access_token: str
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    scope: str = ""
    credentials: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(
        cls, payload: Dict[str, Any], *, now: Optional[datetime] = None
    ) -> "GraphToken":
        issued = now or datetime.now(timezone.utc)
        expires_in = payload.get("expires_in")
        expires_at = issued + timedelta(seconds=int(expires_in)) if expires_in else None
        return cls(
            access_token=payload["access_token"],
            expires_at=expires_at,
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope", ""),
            credentials=dict(payload),
        )

    def is_expired(
        self, *, leeway: timedelta = timedelta(minutes=5), now: Optional[datetime] = None
    ) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return self.expires_at <= current + leeway


class GraphSession:
    """Holder of the current Graph token for one signed-in user."""

    def __init__(self, token: Optional[GraphToken] = None) -> None:
        self._token = token

    @property
    def token(self) -> Optional[GraphToken]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_token(self, token: GraphToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    def auth_header(self) -> Dict[str, str]:
        """Return request headers carrying the bearer token."""
        if self._token is None:
            raise ConfigError("missing Microsoft Graph access token, call login() first")
        return {"Authorization": f"Bearer {self._token.access_token}"}


def login(
    session: GraphSession,
    app: OAuthApp,
    code: Optional[str] = None,
    scope: str = DEFAULT_SCOPE,
    endpoint: Optional[GraphEndpoint] = None,
    oauth_client: Optional[GraphOAuthClient] = None,
) -> GraphToken:
    """
    Obtain a token and store it on ``session``.

    With an authorization ``code`` the code is redeemed. Without one the
    current token is reused while it is valid, refreshed when it carries a
    refresh token, and otherwise a device-code sign-in is started.
    """
    client = oauth_client or GraphOAuthClient(app, endpoint or graph_endpoint())

    if code is not None:
        payload = client.exchange_authorization_code(code, scope)
    else:
        current = session.token
        if current is not None and not current.is_expired():
            return current
        if current is not None and current.refresh_token:
            logger.info("Refreshing Microsoft Graph access token")
            payload = client.refresh_token(current.refresh_token, scope)
        else:
            flow = client.start_device_flow(scope)
            logger.warning("%s", flow.get("message") or flow.get("verification_uri"))
            payload = client.poll_device_flow(flow)

    raise_for_token_error(payload)
    if not payload.get("access_token"):
        raise AuthError(
            "incomplete_token", description="Token endpoint returned no access_token."
        )
    if "refresh_token" not in payload and session.token is not None and code is None:
        # Refresh responses may omit the refresh token; keep the one we redeemed.
        payload = {**payload, "refresh_token": session.token.refresh_token}

    token = GraphToken.from_payload(payload)
    session.set_token(token)
    logger.info("Stored Microsoft Graph token (scope=%s)", token.scope or scope)
    return token


__all__ = ["DEFAULT_SCOPE", "GraphSession", "GraphToken", "login"]
