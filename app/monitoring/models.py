from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class MonitoringEvent(BaseModel):
    """Client-side error / performance event reported by the web app."""

    type: str  # e.g. "error", "performance", "user_action"
    message: Optional[str] = None
    severity: Literal["debug", "info", "warning", "error", "critical"] = "info"
    url: Optional[str] = None
    user_id: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)


class MonitoringEventResponse(BaseModel):
    success: bool = True
