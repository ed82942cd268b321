from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

ActivityType = Literal[
    "sql_injection_attempt",
    "rate_limit_exceeded",
    "unusual_query_pattern",
    "unauthorized_access",
]
Severity = Literal["low", "medium", "high", "critical"]


class QueryPattern(BaseModel):
    """One query as seen by the monitor: who ran it, from where, and its raw text."""

    query: str
    endpoint: str = "unknown"
    timestamp: datetime
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class SuspiciousActivity(BaseModel):
    type: ActivityType
    severity: Severity
    details: str
    timestamp: datetime
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    ip_address: Optional[str] = None


class UserActivityCount(BaseModel):
    user_id: str
    count: int


class SecurityMetrics(BaseModel):
    total_queries: int
    suspicious_activities: int  # last 24 hours
    critical_alerts: int  # last 24 hours
    top_suspicious_users: list[UserActivityCount] = Field(default_factory=list)
    recent_alerts: list[SuspiciousActivity] = Field(default_factory=list)


class SecurityMetricsResponse(BaseModel):
    success: bool = True
    data: SecurityMetrics
    timestamp: datetime
