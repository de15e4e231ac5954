from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class WebhookLogRequest(BaseModel):
    """Client-reported outcome of a webhook call"""
    status: int = 0
    headers: Dict[str, Any] = {}
    body: Any = ""
    error: Optional[str] = None


class WebhookLogEntry(WebhookLogRequest):
    timestamp: str = Field(..., description="ISO-8601 UTC time the entry was recorded")


class WebhookLogAck(BaseModel):
    success: bool = True


class WebhookLogsResponse(BaseModel):
    logs: List[WebhookLogEntry]
    total: int
