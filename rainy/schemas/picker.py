"""Schemas exchanged with the embedded file picker."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PickerSelection(BaseModel):
    """Selection reported by the OneDrive picker's success callback."""

    input_id: str = Field(..., description="Input the picker button is bound to.")
    files: Any = Field(
        ..., description="Picker response, typically {'value': [driveItem, ...]}."
    )


__all__ = ["PickerSelection"]
