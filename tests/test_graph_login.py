from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, parse_qsl, urlsplit

import httpx
import pytest

from rainy.clients.errors import AuthError, ConfigError, ParseError
from rainy.clients.graph import GraphClient
from rainy.clients.graph_auth import (
    GraphOAuthClient,
    OAuthApp,
    OAuthStateEncoder,
    OAuthStateError,
    graph_endpoint,
)
from rainy.services.graph_session import GraphSession, GraphToken, login

APP = OAuthApp(client_id="client-123", redirect_uri="http://localhost:8000/")


class TokenEndpoint:
    """Scripted identity platform answering form posts in order."""

    def __init__(self, *responses: httpx.Response) -> None:
        self._responses = list(responses)
        self.forms: list[dict[str, str]] = []
        self.urls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        self.forms.append(dict(parse_qsl(request.content.decode("utf-8"))))
        return self._responses.pop(0)

    def client(self, app: OAuthApp = APP) -> GraphOAuthClient:
        return GraphOAuthClient(app, graph_endpoint(), transport=httpx.MockTransport(self))


def _token_payload(access_token: str = "access-1", **extra) -> dict:
    return {
        "token_type": "Bearer",
        "scope": "Files.ReadWrite.All",
        "expires_in": 3600,
        "access_token": access_token,
        "refresh_token": "refresh-1",
        **extra,
    }


def test_login_with_code_stores_token() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json=_token_payload()))
    session = GraphSession()

    token = login(session, APP, code="auth-code", oauth_client=endpoint.client())

    assert session.token is token
    assert token.access_token == "access-1"
    assert token.refresh_token == "refresh-1"
    assert token.credentials["token_type"] == "Bearer"
    assert session.auth_header() == {"Authorization": "Bearer access-1"}

    form = endpoint.forms[0]
    assert endpoint.urls[0] == "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "auth-code"
    assert form["client_id"] == "client-123"
    assert form["redirect_uri"] == "http://localhost:8000/"
    assert form["scope"] == "Files.ReadWrite.All"
    assert "client_secret" not in form


def test_login_sends_client_secret_for_confidential_apps() -> None:
    app = OAuthApp(client_id="client-123", client_secret="s3cret")
    endpoint = TokenEndpoint(httpx.Response(200, json=_token_payload()))

    login(GraphSession(), app, code="auth-code", oauth_client=endpoint.client(app))

    assert endpoint.forms[0]["client_secret"] == "s3cret"


def test_login_overwrites_previous_token() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json=_token_payload("first")),
        httpx.Response(200, json=_token_payload("second")),
    )
    session = GraphSession()
    client = endpoint.client()

    login(session, APP, code="one", oauth_client=client)
    login(session, APP, code="two", oauth_client=client)

    assert session.token.access_token == "second"


def test_login_error_payload_raises_auth_error() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(
            400,
            json={
                "error": "invalid_grant",
                "error_codes": [700016],
                "error_description": "Application not found in the directory.",
            },
        )
    )
    session = GraphSession()

    with pytest.raises(AuthError) as excinfo:
        login(session, APP, code="bad", oauth_client=endpoint.client())

    assert "invalid_grant (700016)" in str(excinfo.value)
    assert "Application not found" in str(excinfo.value)
    assert excinfo.value.error_codes == [700016]
    assert session.token is None


def test_login_rejects_non_json_token_response() -> None:
    endpoint = TokenEndpoint(httpx.Response(502, text="<html>bad gateway</html>"))

    with pytest.raises(ParseError):
        login(GraphSession(), APP, code="x", oauth_client=endpoint.client())


def test_login_without_code_reuses_valid_token(session: GraphSession) -> None:
    endpoint = TokenEndpoint()
    current = session.token

    assert login(session, APP, oauth_client=endpoint.client()) is current
    assert endpoint.forms == []


def test_login_without_code_refreshes_expired_token() -> None:
    session = GraphSession(
        GraphToken(
            access_token="stale",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            refresh_token="refresh-old",
        )
    )
    payload = _token_payload("fresh")
    payload.pop("refresh_token")
    endpoint = TokenEndpoint(httpx.Response(200, json=payload))

    token = login(session, APP, oauth_client=endpoint.client())

    assert token.access_token == "fresh"
    assert token.refresh_token == "refresh-old"
    assert endpoint.forms[0]["grant_type"] == "refresh_token"
    assert endpoint.forms[0]["refresh_token"] == "refresh-old"


def test_login_without_code_runs_device_flow() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(
            200,
            json={
                "device_code": "device-xyz",
                "user_code": "ABCD-EFGH",
                "verification_uri": "https://microsoft.com/devicelogin",
                "message": "To sign in, enter ABCD-EFGH",
                "interval": 0,
                "expires_in": 900,
            },
        ),
        httpx.Response(400, json={"error": "authorization_pending"}),
        httpx.Response(200, json=_token_payload("device-token")),
    )
    session = GraphSession()

    token = login(session, APP, oauth_client=endpoint.client())

    assert token.access_token == "device-token"
    assert endpoint.urls[0].endswith("/oauth2/v2.0/devicecode")
    assert endpoint.forms[1]["grant_type"] == "urn:ietf:params:oauth:grant-type:device_code"
    assert endpoint.forms[2]["device_code"] == "device-xyz"


def test_device_flow_declined_raises_auth_error() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"device_code": "d", "interval": 0, "expires_in": 900}),
        httpx.Response(
            400,
            json={
                "error": "authorization_declined",
                "error_codes": [70000],
                "error_description": "The user declined.",
            },
        ),
    )

    with pytest.raises(AuthError, match="authorization_declined"):
        login(GraphSession(), APP, oauth_client=endpoint.client())


def test_get_before_login_raises_config_error() -> None:
    client = GraphClient(GraphSession())

    with pytest.raises(ConfigError, match="login"):
        client.get("me")


def test_token_expiry_uses_leeway() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    token = GraphToken.from_payload({"access_token": "a", "expires_in": 600}, now=now)

    assert token.expires_at == now + timedelta(seconds=600)
    assert not token.is_expired(now=now)
    assert token.is_expired(now=now + timedelta(minutes=6))
    assert not GraphToken(access_token="forever").is_expired()


def test_authorization_url_carries_app_and_scope() -> None:
    client = GraphOAuthClient(APP)

    url = client.build_authorization_url("Files.ReadWrite.All offline_access", state="abc")

    parts = urlsplit(url)
    params = parse_qs(parts.query)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
        "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
    )
    assert params["client_id"] == ["client-123"]
    assert params["response_type"] == ["code"]
    assert params["redirect_uri"] == ["http://localhost:8000/"]
    assert params["scope"] == ["Files.ReadWrite.All offline_access"]
    assert params["state"] == ["abc"]


def test_state_encoder_roundtrip_and_tampering() -> None:
    encoder = OAuthStateEncoder("secret", ttl_seconds=60)
    state = encoder.encode({"next": "/"}, now=1000)

    assert encoder.decode(state, now=1030)["next"] == "/"
    with pytest.raises(OAuthStateError, match="expired"):
        encoder.decode(state, now=1100)
    with pytest.raises(OAuthStateError):
        OAuthStateEncoder("other-secret").decode(state, now=1030)
    with pytest.raises(OAuthStateError):
        encoder.decode("not-base64!!")
