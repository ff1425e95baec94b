"""Schemas returned by the Graph-backed API routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SessionStatus(BaseModel):
    """Whether the process holds a Graph token, and for how long."""

    authenticated: bool
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None


class SearchResponse(BaseModel):
    """Flattened drive item records matching a search."""

    query: str
    count: int = Field(..., description="Number of records across all pages.")
    items: List[Dict[str, Any]] = Field(default_factory=list)


__all__ = ["SearchResponse", "SessionStatus"]
