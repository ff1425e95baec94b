"""Service layer exports."""

from .graph_session import GraphSession, GraphToken, login
from .tabular import ContentKind, TableOptions

__all__ = [
    "ContentKind",
    "GraphSession",
    "GraphToken",
    "TableOptions",
    "login",
]
