"""
Microsoft identity platform OAuth utilities.

These helpers build the authorization URL, sign the OAuth ``state`` value and
talk to the v2.0 token endpoint for the authorization-code, refresh-token and
device-code grants.
"""

from __future__ import annotations

import base64
import hmac
import json
import logging
import re
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from rainy.clients.errors import AuthError, ParseError

logger = logging.getLogger(__name__)

LOGIN_BASE_URL = "https://login.microsoftonline.com"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
_PENDING_ERRORS = ("authorization_pending", "slow_down")


@dataclass(frozen=True)
class OAuthApp:
    """A registered Azure AD application."""

    client_id: str
    redirect_uri: str = "http://localhost:8000/"
    client_secret: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "redirect_uri", re.sub(r"//$", "/", self.redirect_uri))


@dataclass(frozen=True)
class GraphEndpoint:
    """OAuth endpoints of one tenant on the Microsoft identity platform."""

    authorize_url: str
    token_url: str
    device_code_url: str


def graph_endpoint(tenant: str = "common") -> GraphEndpoint:
    """Build the endpoint set for ``tenant``; the tenant is not validated."""
    base = f"{LOGIN_BASE_URL}/{tenant}/oauth2/v2.0"
    return GraphEndpoint(
        authorize_url=f"{base}/authorize",
        token_url=f"{base}/token",
        device_code_url=f"{base}/devicecode",
    )


def raise_for_token_error(payload: Dict[str, Any]) -> None:
    """Raise :class:`AuthError` when a token payload carries an ``error`` field."""
    error = payload.get("error")
    if not error:
        return
    error_codes = payload.get("error_codes") or []
    if not isinstance(error_codes, list):
        error_codes = [error_codes]
    raise AuthError(
        code=str(error),
        error_codes=error_codes,
        description=payload.get("error_description", ""),
    )


class OAuthStateError(Exception):
    """Raised when a returned OAuth state value is forged or stale."""


class OAuthStateEncoder:
    """Sign OAuth state values so the callback can detect tampering and replay."""

    def __init__(self, secret_key: str, ttl_seconds: int = 900) -> None:
        self._secret_key = secret_key.encode("utf-8")
        self._ttl_seconds = ttl_seconds

    def _sign(self, serialized: bytes) -> bytes:
        return hmac.new(self._secret_key, serialized, sha256).digest()

    def encode(
        self, payload: Optional[Dict[str, Any]] = None, *, now: Optional[float] = None
    ) -> str:
        body = dict(payload or {})
        body["issued_at"] = int(now if now is not None else time.time())
        serialized = json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return base64.urlsafe_b64encode(self._sign(serialized) + serialized).decode("ascii")

    def decode(self, token: str, *, now: Optional[float] = None) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            raise OAuthStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        if not hmac.compare_digest(signature, self._sign(serialized)):
            raise OAuthStateError("Invalid OAuth state signature.")
        body = json.loads(serialized)
        current = now if now is not None else time.time()
        if current - body.get("issued_at", 0) > self._ttl_seconds:
            raise OAuthStateError("OAuth state has expired.")
        return body


class GraphOAuthClient:
    """Build authorization URLs and redeem grants against the token endpoint."""

    def __init__(
        self,
        app: OAuthApp,
        endpoint: Optional[GraphEndpoint] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.app = app
        self.endpoint = endpoint or graph_endpoint()
        self._timeout = timeout
        self._transport = transport

    def build_authorization_url(self, scope: str, state: Optional[str] = None) -> str:
        """Construct the consent URL the browser is sent to."""
        params = {
            "client_id": self.app.client_id,
            "response_type": "code",
            "redirect_uri": self.app.redirect_uri,
            "response_mode": "query",
            "scope": scope,
        }
        if state:
            params["state"] = state
        return f"{self.endpoint.authorize_url}?{urlencode(params)}"

    def exchange_authorization_code(self, code: str, scope: str) -> Dict[str, Any]:
        """Redeem an authorization code. Returns the raw token payload."""
        return self._post_form(
            self.endpoint.token_url,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.app.redirect_uri,
                "scope": scope,
            },
        )

    def refresh_token(self, refresh_token: str, scope: str) -> Dict[str, Any]:
        """Redeem a refresh token. Returns the raw token payload."""
        return self._post_form(
            self.endpoint.token_url,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": scope,
            },
        )

    def start_device_flow(self, scope: str) -> Dict[str, Any]:
        """Request a device code; the payload holds ``user_code`` and ``message``."""
        flow = self._post_form(self.endpoint.device_code_url, {"scope": scope})
        raise_for_token_error(flow)
        return flow

    def poll_device_flow(
        self,
        flow: Dict[str, Any],
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> Dict[str, Any]:
        """Poll the token endpoint until the user finishes signing in or the code expires."""
        interval = float(flow.get("interval", 5))
        deadline = clock() + float(flow.get("expires_in", 900))
        data = {"grant_type": DEVICE_CODE_GRANT, "device_code": flow["device_code"]}

        while True:
            sleep(interval)
            payload = self._post_form(self.endpoint.token_url, data)
            if payload.get("error") not in _PENDING_ERRORS:
                return payload
            if payload["error"] == "slow_down":
                interval += 5
            if clock() >= deadline:
                return {
                    "error": "expired_token",
                    "error_description": "Device code expired before sign-in completed.",
                }

    def _post_form(self, url: str, data: Dict[str, str]) -> Dict[str, Any]:
        form = {"client_id": self.app.client_id, **data}
        if self.app.client_secret:
            form["client_secret"] = self.app.client_secret

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            response = client.post(url, data=form)
        logger.debug("POST %s -> %s", url, response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(
                f"Token endpoint returned a non-JSON body (status {response.status_code})."
            ) from exc
        if not isinstance(payload, dict):
            raise ParseError("Token endpoint returned an unexpected payload.")
        return payload


__all__ = [
    "GraphEndpoint",
    "GraphOAuthClient",
    "OAuthApp",
    "OAuthStateEncoder",
    "OAuthStateError",
    "graph_endpoint",
    "raise_for_token_error",
]
