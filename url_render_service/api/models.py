"""
Pydantic response models for the URL Render Service API.

Field names follow the wire format the clients already consume (`timeTaken`),
hence the camelCase.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class RenderResultSchema(BaseModel):
    """A rendered page: HTML, public screenshot URL, seconds taken, and the URL."""
    html: str
    screenshot: str
    timeTaken: float
    url: str


class RenderResponse(BaseModel):
    """Envelope returned by `/api/render-url`; HTTP status is 200 either way."""
    success: bool
    data: Optional[RenderResultSchema] = None
    error: Optional[str] = None


class IpResponse(BaseModel):
    success: bool
    data: Optional[str] = None
    error: Optional[str] = None


class OperationResponse(BaseModel):
    """Envelope for health and restart endpoints."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
