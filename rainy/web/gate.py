"""
Login redirect gate for pages that need a Graph session.

A page request without an authorization ``code`` is answered with a script
that sends the browser to the Microsoft consent screen; once the identity
platform redirects back with a code, the real page is served.
"""

from __future__ import annotations

import json
from typing import Mapping, Optional

from rainy.clients.graph_auth import GraphOAuthClient, OAuthStateEncoder

_REDIRECT_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Signing in...</title></head>
<body><script>location.replace({url});</script></body>
</html>
"""


class RedirectGate:
    """Choose between the login redirect and the application page."""

    def __init__(
        self,
        oauth_client: GraphOAuthClient,
        scope: str,
        state_encoder: Optional[OAuthStateEncoder] = None,
    ) -> None:
        self._oauth_client = oauth_client
        self._scope = scope
        self._state_encoder = state_encoder

    def authorization_url(self) -> str:
        state = self._state_encoder.encode() if self._state_encoder else None
        return self._oauth_client.build_authorization_url(self._scope, state=state)

    def redirect_page(self) -> str:
        # json.dumps gives a JS string literal; "</" is split so it cannot close the tag.
        literal = json.dumps(self.authorization_url()).replace("</", "<\\/")
        return _REDIRECT_PAGE.format(url=literal)

    def render(self, query_params: Mapping[str, str], ui_html: str) -> str:
        if not query_params.get("code"):
            return self.redirect_page()
        return ui_html


__all__ = ["RedirectGate"]
