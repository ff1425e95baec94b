"""
FastAPI routes: the login-gated landing page and a small JSON API over Graph.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse

from rainy.clients import ApiError, AuthError, ConfigError, GraphError
from rainy.clients.graph_auth import OAuthStateError
from rainy.dependencies import (
    get_app_settings,
    get_graph_client,
    get_graph_oauth_client,
    get_graph_session,
    get_oauth_state_encoder,
    get_picker_options,
    get_picker_selection_store,
    get_redirect_gate,
)
from rainy.schemas import PickerSelection, SearchResponse, SessionStatus
from rainy.services import login
from rainy.web.picker import render_picker

router = APIRouter()
page_router = APIRouter()
logger = logging.getLogger(__name__)

_PICKER_INPUT_ID = "selected"

_LANDING_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>rainy</title></head>
<body>
<h3>You are now logged in</h3>
{picker}
</body>
</html>
"""


def _to_http_error(exc: GraphError) -> HTTPException:
    """Translate Graph client failures into API responses."""
    if isinstance(exc, ConfigError):
        return HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, AuthError):
        return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ApiError):
        return HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail={"code": exc.code, "status": exc.status_code, "message": exc.message},
        )
    return HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=str(exc))


@page_router.get("/", response_class=HTMLResponse)
def landing_page(
    request: Request,
    gate: Annotated[Any, Depends(get_redirect_gate)],
    oauth_client: Annotated[Any, Depends(get_graph_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    session: Annotated[Any, Depends(get_graph_session)],
    settings: Annotated[Any, Depends(get_app_settings)],
    picker_options: Annotated[Any, Depends(get_picker_options)],
) -> HTMLResponse:
    """Send the browser to sign in, or complete the sign-in and show the app."""
    params = request.query_params
    if params.get("error"):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"{params['error']}: {params.get('error_description', '')}",
        )

    code = params.get("code")
    if code:
        state = params.get("state")
        if state:
            try:
                state_encoder.decode(state)
            except OAuthStateError as exc:
                logger.warning("Rejected OAuth callback: %s", exc)
                raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
        try:
            login(
                session,
                oauth_client.app,
                code=code,
                scope=settings.graph.scope,
                oauth_client=oauth_client,
            )
        except GraphError as exc:
            raise _to_http_error(exc) from exc

    submit_url = str(request.url_for("submit_picker_selection"))
    picker = render_picker(_PICKER_INPUT_ID, picker_options, submit_url)
    return HTMLResponse(gate.render(params, _LANDING_PAGE.format(picker=picker)))


@router.get("/health", status_code=HTTPStatus.OK)
def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/session", response_model=SessionStatus)
def session_status(session: Annotated[Any, Depends(get_graph_session)]) -> SessionStatus:
    token = session.token
    if token is None:
        return SessionStatus(authenticated=False)
    return SessionStatus(authenticated=True, expires_at=token.expires_at, scope=token.scope)


@router.delete("/session", status_code=HTTPStatus.NO_CONTENT)
def end_session(session: Annotated[Any, Depends(get_graph_session)]) -> None:
    session.clear()


@router.get("/me")
def current_user(graph: Annotated[Any, Depends(get_graph_client)]) -> dict:
    """Profile of the signed-in user."""
    try:
        return graph.get("me")
    except GraphError as exc:
        raise _to_http_error(exc) from exc


@router.get("/drive/search", response_model=SearchResponse)
def search_drive(
    graph: Annotated[Any, Depends(get_graph_client)],
    q: str = Query(
        ..., min_length=1, description="Text matched against names, metadata and content."
    ),
    drive: str = Query("me/drive/root", description="Drive item the search is scoped to."),
    top: Optional[int] = Query(None, ge=1, description="Page size requested from Graph."),
) -> SearchResponse:
    try:
        table = graph.search(q, drive=drive, top=top)
    except GraphError as exc:
        raise _to_http_error(exc) from exc

    if table is None:
        return SearchResponse(query=q, count=0, items=[])
    items = table.astype(object).where(table.notna(), None).to_dict(orient="records")
    return SearchResponse(query=q, count=len(items), items=items)


@router.post("/picker/selection", status_code=HTTPStatus.ACCEPTED)
def submit_picker_selection(
    payload: PickerSelection,
    store: Annotated[Any, Depends(get_picker_selection_store)],
) -> dict:
    """Input channel the picker button reports the chosen files to."""
    store.put(payload)
    return {"status": "received", "input_id": payload.input_id}


@router.get("/picker/selection/{input_id}", response_model=PickerSelection)
def read_picker_selection(
    input_id: str,
    store: Annotated[Any, Depends(get_picker_selection_store)],
) -> PickerSelection:
    selection = store.get(input_id)
    if selection is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"No selection received for {input_id}.",
        )
    return selection


__all__ = ["page_router", "router"]
