"""
OneDrive file picker button.

Renders the picker SDK script, an ``picker_<input_id>()`` launcher and a
button. The picker's selection is POSTed as JSON to ``submit_url`` so the
hosting application receives it under ``input_id``. See the OneDrive
"File Picker v7.2" reference for the option names.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from rainy.schemas.picker import PickerSelection

_INPUT_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PickerOptions(BaseModel):
    """Settings passed to ``OneDrive.open``."""

    client_id: str
    multiple: bool = False
    view_type: Literal["files", "folders", "all"] = "files"
    endpoint_hint: str = Field(
        "api.onedrive.com",
        description=(
            '"api.onedrive.com" for OneDrive personal, otherwise the OneDrive for '
            "Business or SharePoint document library URL."
        ),
    )
    query_parameters: Optional[List[str]] = Field(
        None, description="Fields to select on returned items, e.g. ['id', 'name']."
    )
    accept: Optional[List[str]] = Field(
        None, description="File extensions the user may pick, e.g. ['.csv', '.xlsx']."
    )
    sdk: float = 7.2

    def sdk_url(self) -> str:
        return "https://js.live.net/v%.1f/OneDrive.js" % self.sdk

    def to_sdk_options(self) -> Dict[str, Any]:
        advanced: Dict[str, Any] = {"endpointHint": self.endpoint_hint}
        if self.query_parameters:
            advanced["queryParameters"] = "select=" + ",".join(self.query_parameters)
        if self.accept:
            advanced["filter"] = ",".join(["folder", *self.accept])
        return {
            "clientId": self.client_id,
            "action": "query",
            "multiSelect": self.multiple,
            "viewType": self.view_type,
            "advanced": advanced,
        }


def _js(value: Any) -> str:
    return json.dumps(value).replace("</", "<\\/")


def _css_width(width: Union[int, str]) -> str:
    return f"{width}px" if isinstance(width, int) else str(width)


def render_picker(
    input_id: str,
    options: PickerOptions,
    submit_url: str,
    *,
    label: str = "Browse...",
    width: Optional[Union[int, str]] = None,
) -> str:
    """Return the HTML for a picker button bound to ``input_id``."""
    if not _INPUT_ID.match(input_id):
        raise ValueError(f"input_id must be a valid identifier, got {input_id!r}")

    launcher = (
        f"function picker_{input_id}() {{\n"
        f"  var odOptions = {_js(options.to_sdk_options())};\n"
        "  odOptions.success = function(files) {\n"
        f"    fetch({_js(submit_url)}, {{\n"
        '      method: "POST",\n'
        '      headers: {"Content-Type": "application/json"},\n'
        f"      body: JSON.stringify({{input_id: {_js(input_id)}, files: files}})\n"
        "    });\n"
        "  };\n"
        "  OneDrive.open(odOptions);\n"
        "}"
    )
    style = f' style="width: {html.escape(_css_width(width))};"' if width is not None else ""
    return (
        f'<div class="form-group input-container"{style}>'
        '<div class="input-group"><label class="input-group-btn">'
        f'<button type="button" class="btn btn-default" onclick="picker_{input_id}()">'
        f"{html.escape(label)}</button>"
        "</label></div>"
        f'<script type="text/javascript" src="{html.escape(options.sdk_url())}"></script>'
        f'<script type="text/javascript">\n{launcher}\n</script>'
        "</div>"
    )


class PickerSelectionStore:
    """Latest picker selection per input id, as reported by the browser."""

    def __init__(self) -> None:
        self._selections: Dict[str, PickerSelection] = {}

    def put(self, selection: PickerSelection) -> None:
        self._selections[selection.input_id] = selection

    def get(self, input_id: str) -> Optional[PickerSelection]:
        return self._selections.get(input_id)


__all__ = ["PickerOptions", "PickerSelectionStore", "render_picker"]
