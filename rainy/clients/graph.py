"""Microsoft Graph REST client: URL resolution, response dispatch, search and upload."""

from __future__ import annotations

import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union
from urllib.parse import quote

import httpx
import pandas as pd

from rainy.clients.errors import (
    ApiError,
    PaginationLimitError,
    ParseError,
    UploadTooLargeError,
)
from rainy.services.tabular import (
    ContentKind,
    SheetSelector,
    TableOptions,
    classify,
    normalize_extension,
    read_table,
    scoped_tempfile,
)

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from rainy.services.graph_session import GraphSession

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com"
SIMPLE_UPLOAD_LIMIT = 4_000_000
NEXT_LINK = "@odata.nextLink"


def resolve_url(endpoint: str, api_version: Union[int, float] = 1) -> str:
    """Expand a relative Graph path; absolute ``https`` URLs pass through untouched."""
    if endpoint.startswith("https"):
        return endpoint
    version = "beta" if api_version == 0 else "v%.1f" % api_version
    return f"{GRAPH_BASE_URL}/{version}/{endpoint}"


def flatten_records(value: Any) -> Any:
    """Flatten arrays of JSON objects into records with dotted keys.

    ``[{"file": {"mimeType": "text/csv"}}]`` becomes ``[{"file.mimeType": "text/csv"}]``.
    Objects outside of arrays keep their nesting so envelopes such as
    ``{"error": {"code": ...}}`` stay addressable.
    """
    if isinstance(value, dict):
        return {key: flatten_records(item) for key, item in value.items()}
    if isinstance(value, list):
        if value and all(isinstance(item, dict) for item in value):
            return [_flatten_record(item) for item in value]
        return [flatten_records(item) for item in value]
    return value


def _flatten_record(record: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, item in record.items():
        name = f"{prefix}{key}"
        if isinstance(item, dict) and item:
            flat.update(_flatten_record(item, f"{name}."))
        else:
            flat[name] = flatten_records(item)
    return flat


def guess_media_type(path: str, fileext: Optional[str] = None) -> str:
    target = path
    if not os.path.splitext(path)[1] and fileext:
        target = path + normalize_extension(fileext)
    media_type, _ = mimetypes.guess_type(target)
    return media_type or "application/octet-stream"


@dataclass(frozen=True)
class SearchQuery:
    """A drive item search request; builds the OData path with proper escaping."""

    text: str
    drive: str = "me/drive/root"
    top: Optional[int] = None

    @property
    def path(self) -> str:
        # OData string literals escape a quote by doubling it.
        escaped = quote(self.text.replace("'", "''"), safe="")
        path = f"{self.drive}/search(q='{escaped}')"
        if self.top is not None:
            path += f"?$top={int(self.top)}"
        return path


class GraphClient:
    """Authenticated calls against Microsoft Graph for one :class:`GraphSession`."""

    def __init__(
        self,
        session: "GraphSession",
        *,
        api_version: Union[int, float] = 1,
        timeout: float = 30.0,
        max_pages: int = 1000,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.session = session
        self.api_version = api_version
        self.max_pages = max_pages
        self._timeout = timeout
        self._transport = transport

    def _http(self, *, follow_redirects: bool) -> httpx.Client:
        return httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=follow_redirects,
        )

    def dispatch(
        self,
        url: str,
        auth: Optional[Mapping[str, str]] = None,
        verb: str = "GET",
        fileext: Optional[str] = "",
        *,
        sheet: SheetSelector = 0,
        skip: int = 0,
        col_types: Any = None,
        **request_kwargs: Any,
    ) -> Any:
        """
        Perform a request and decode the response according to its content kind.

        Downloads (GET on a ``.../content`` URL) return raw bytes, or a pandas
        table for pickle, spreadsheet and CSV extensions. Everything else is
        decoded as JSON. Any status of 300 or above raises :class:`ApiError`.
        """
        verb = verb.upper()
        kind = classify(verb, url, fileext)
        headers = {**(auth or {}), **request_kwargs.pop("headers", {})}
        logger.debug("%s %s as %s", verb, url, kind.value)

        with self._http(follow_redirects=kind is not ContentKind.JSON) as client:
            if kind.is_tabular:
                options = TableOptions(sheet=sheet, skip=skip, col_types=col_types)
                suffix = normalize_extension(fileext)
                return self._download_table(
                    client, kind, verb, url, headers, suffix, options, request_kwargs
                )
            response = client.request(verb, url, headers=headers, **request_kwargs)

        if kind is ContentKind.BINARY and response.status_code < 300:
            return response.content
        return self._decode(response)

    def _download_table(
        self,
        client: httpx.Client,
        kind: ContentKind,
        verb: str,
        url: str,
        headers: Dict[str, str],
        suffix: str,
        options: TableOptions,
        request_kwargs: Dict[str, Any],
    ) -> Any:
        with scoped_tempfile(suffix) as path:
            with client.stream(verb, url, headers=headers, **request_kwargs) as response:
                if response.status_code >= 300:
                    response.read()
                else:
                    with open(path, "wb") as sink:
                        for chunk in response.iter_bytes():
                            sink.write(chunk)
            if response.status_code < 300:
                return read_table(kind, path, options)
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        status = response.status_code
        try:
            payload = flatten_records(json.loads(response.content.decode("utf-8")))
        except ValueError as exc:
            if status >= 300:
                raise ApiError("unknown", status, response.text) from exc
            raise ParseError(f"Graph returned an undecodable body (status {status}).") from exc

        if status < 300:
            return payload

        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            error = {}
        raise ApiError(
            code=str(error.get("code", "unknown")),
            status_code=status,
            message=str(error.get("message", response.reason_phrase)),
        )

    def get(
        self,
        endpoint: str,
        api_version: Optional[Union[int, float]] = None,
        **dispatch_options: Any,
    ) -> Any:
        """GET a Graph resource, e.g. ``client.get("me")`` or ``client.get("drives")``."""
        auth = self.session.auth_header()
        version = self.api_version if api_version is None else api_version
        url = resolve_url(endpoint, version)
        return self.dispatch(url, auth, "GET", **dispatch_options)

    def search(
        self,
        text: str,
        drive: str = "me/drive/root",
        top: Optional[int] = None,
        *,
        max_pages: Optional[int] = None,
        **get_options: Any,
    ) -> Optional[pd.DataFrame]:
        """
        Search drive items by file name, metadata and content.

        All result pages are fetched by following ``@odata.nextLink`` and
        concatenated into one table; columns missing from a page are null.
        Returns ``None`` when nothing matches.
        """
        query = SearchQuery(text=text, drive=drive, top=top)
        result = self.get(query.path, **get_options)

        records = result.get("value") or []
        if not records:
            return None

        table = pd.DataFrame(records)
        next_link = result.get(NEXT_LINK)
        limit = max_pages or self.max_pages
        pages = 1
        while next_link:
            if pages >= limit:
                raise PaginationLimitError(
                    f"Search for {text!r} still had more results after {pages} pages."
                )
            page = self.get(next_link)
            rows = page.get("value") or []
            if rows:
                table = pd.concat([table, pd.DataFrame(rows)], ignore_index=True)
            next_link = page.get(NEXT_LINK)
            pages += 1
            logger.debug("Search page %d added %d rows", pages, len(rows))
        return table

    def upload(
        self,
        path: str,
        endpoint: str = "me/drive/root",
        name: Optional[str] = None,
        fileext: Optional[str] = None,
        *,
        api_version: Optional[Union[int, float]] = None,
    ) -> Dict[str, Any]:
        """
        Create or replace a file with the simple upload API.

        ``endpoint`` is a folder (the file is addressed as
        ``{endpoint}:/{name}:/content``) or an explicit ``.../content`` URL.
        Returns the drive item metadata.
        """
        auth = self.session.auth_header()

        size = os.path.getsize(path)
        if size > SIMPLE_UPLOAD_LIMIT:
            raise UploadTooLargeError(path, size, SIMPLE_UPLOAD_LIMIT)

        if name is None:
            name = quote(os.path.basename(path), safe="")
        if fileext is None:
            fileext = os.path.splitext(path)[1]
        if not endpoint.lower().endswith("content"):
            endpoint = f"{endpoint}:/{name}:/content"

        version = self.api_version if api_version is None else api_version
        url = resolve_url(endpoint, version)
        with open(path, "rb") as handle:
            content = handle.read()

        logger.info("Uploading %s (%d bytes) to %s", path, size, url)
        return self.dispatch(
            url,
            auth,
            "PUT",
            fileext,
            content=content,
            headers={"Content-Type": guess_media_type(path, fileext)},
        )


__all__ = [
    "GRAPH_BASE_URL",
    "GraphClient",
    "SIMPLE_UPLOAD_LIMIT",
    "SearchQuery",
    "flatten_records",
    "guess_media_type",
    "resolve_url",
]
