"""Public schema exports."""

from .graph import SearchResponse, SessionStatus
from .picker import PickerSelection

__all__ = [
    "PickerSelection",
    "SearchResponse",
    "SessionStatus",
]
