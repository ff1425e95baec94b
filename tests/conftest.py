"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from rainy.clients.graph import GraphClient
from rainy.services.graph_session import GraphSession, GraphToken


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def session() -> GraphSession:
    """A session already holding a valid token."""
    return GraphSession(
        GraphToken(
            access_token="graph-token",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            refresh_token="refresh-1",
            scope="Files.ReadWrite.All",
        )
    )


@pytest.fixture
def graph_client(session: GraphSession) -> Callable[[Callable[[httpx.Request], httpx.Response]], GraphClient]:
    """Build a Graph client whose traffic is answered by ``handler``."""

    def _build(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> GraphClient:
        return GraphClient(session, transport=httpx.MockTransport(handler), **kwargs)

    return _build
