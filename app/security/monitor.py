"""Query pattern monitoring for the search API.

Records every search's raw text per user/IP and flags three things:

- SQL-injection-looking input (critical)
- more than RAPID_QUERY_THRESHOLD queries from one user within a minute (high)
- queries that look out of character for the user (medium)

State lives in a MonitorStore passed to the QueryMonitor. The application
creates one monitor at startup (see app.main) and routes receive it through
the get_query_monitor dependency, so tests can swap in a fresh one and a
multi-instance deployment can back it with a shared store.
"""

import logging
import re
from collections import Counter, deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Optional, Protocol

from app.security.models import (
    QueryPattern,
    SecurityMetrics,
    SuspiciousActivity,
    UserActivityCount,
)

logger = logging.getLogger(__name__)

SUSPICIOUS_PATTERNS = [
    re.compile(r"union\s+select", re.IGNORECASE),
    re.compile(r"insert\s+into", re.IGNORECASE),
    re.compile(r"delete\s+from", re.IGNORECASE),
    re.compile(r"drop\s+table", re.IGNORECASE),
    re.compile(r"alter\s+table", re.IGNORECASE),
    re.compile(r"exec\s*\(", re.IGNORECASE),
    re.compile(r"xp_", re.IGNORECASE),
    re.compile(r"sp_", re.IGNORECASE),
    re.compile(r"'.*'.*or.*'.*'", re.IGNORECASE),
    re.compile(r";\s*--"),
    re.compile(r"/\*.*\*/"),
    re.compile(r"script\s*>", re.IGNORECASE),
]

RAPID_QUERY_WINDOW = timedelta(minutes=1)
RATE_LIMIT_WINDOW = timedelta(minutes=10)
METRICS_WINDOW = timedelta(hours=24)

# Unusual-pattern heuristics
USER_HISTORY_SAMPLE = 50
MIN_HISTORY_FOR_BASELINE = 10
QUERY_LENGTH_FACTOR = 3
MIN_DISTINCT_ENDPOINTS = 5

# Longest query text kept in history; longer input is still scanned in full
MAX_STORED_QUERY_LENGTH = 1000


class MonitorStore(Protocol):
    def add_query(self, pattern: QueryPattern) -> None: ...

    def queries(self) -> list[QueryPattern]: ...

    def add_activity(self, activity: SuspiciousActivity) -> None: ...

    def activities(self) -> list[SuspiciousActivity]: ...


class InMemoryMonitorStore:
    """Bounded per-process history; oldest entries are dropped first."""

    def __init__(self, max_history: int = 1000):
        self._queries: deque[QueryPattern] = deque(maxlen=max_history)
        self._activities: deque[SuspiciousActivity] = deque(maxlen=max_history)

    def add_query(self, pattern: QueryPattern) -> None:
        self._queries.append(pattern)

    def queries(self) -> list[QueryPattern]:
        return list(self._queries)

    def add_activity(self, activity: SuspiciousActivity) -> None:
        self._activities.append(activity)

    def activities(self) -> list[SuspiciousActivity]:
        return list(self._activities)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def looks_like_injection(text: str) -> bool:
    return any(pattern.search(text) for pattern in SUSPICIOUS_PATTERNS)


class QueryMonitor:
    def __init__(
        self,
        store: MonitorStore,
        *,
        rapid_query_threshold: int = 100,
        sql_injection_threshold: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.rapid_query_threshold = rapid_query_threshold
        self.sql_injection_threshold = sql_injection_threshold
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def log_query(
        self,
        query: str,
        *,
        endpoint: str = "unknown",
        user_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> list[SuspiciousActivity]:
        """Record a query and return any suspicious activity it triggered."""
        pattern = QueryPattern(
            query=query[:MAX_STORED_QUERY_LENGTH],
            endpoint=endpoint,
            timestamp=self.now(),
            user_id=user_id,
            tenant_id=tenant_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.store.add_query(pattern)
        return self._analyze(pattern, query)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _analyze(self, pattern: QueryPattern, query: str) -> list[SuspiciousActivity]:
        found: list[SuspiciousActivity] = []

        if looks_like_injection(query):
            found.append(
                self._record(
                    pattern,
                    "sql_injection_attempt",
                    "critical",
                    f"Potential SQL injection detected in query: {pattern.query[:100]}...",
                )
            )

        recent = self._recent_queries(pattern.user_id, RAPID_QUERY_WINDOW)
        if len(recent) > self.rapid_query_threshold:
            found.append(
                self._record(
                    pattern,
                    "rate_limit_exceeded",
                    "high",
                    f"User exceeded query rate limit: {len(recent)} queries in 1 minute",
                )
            )

        if self._is_unusual(pattern, query):
            found.append(
                self._record(
                    pattern,
                    "unusual_query_pattern",
                    "medium",
                    "Unusual query pattern detected for user",
                )
            )

        return found

    def _recent_queries(self, user_id: Optional[str], window: timedelta) -> list[QueryPattern]:
        cutoff = self.now() - window
        return [q for q in self.store.queries() if q.timestamp >= cutoff and q.user_id == user_id]

    def _is_unusual(self, pattern: QueryPattern, query: str) -> bool:
        if not pattern.user_id:
            return False

        history = [q for q in self.store.queries() if q.user_id == pattern.user_id]
        history = history[-USER_HISTORY_SAMPLE:]
        if len(history) < MIN_HISTORY_FOR_BASELINE:
            return False

        # Searches with only structured filters log "" and carry no length signal
        text_lengths = [len(q.query) for q in history if q.query]
        if len(text_lengths) >= MIN_HISTORY_FOR_BASELINE:
            average_length = sum(text_lengths) / len(text_lengths)
            if len(query) > average_length * QUERY_LENGTH_FACTOR:
                return True

        endpoint_counts = Counter(q.endpoint for q in history)
        rare_endpoint = endpoint_counts[pattern.endpoint] <= 1
        return rare_endpoint and len(endpoint_counts) > MIN_DISTINCT_ENDPOINTS

    def _record(
        self, pattern: QueryPattern, activity_type: str, severity: str, details: str
    ) -> SuspiciousActivity:
        activity = SuspiciousActivity(
            type=activity_type,
            severity=severity,
            details=details,
            timestamp=self.now(),
            user_id=pattern.user_id,
            tenant_id=pattern.tenant_id,
            ip_address=pattern.ip_address,
        )
        self.store.add_activity(activity)

        extra = (
            f"user={pattern.user_id} tenant={pattern.tenant_id} "
            f"ip={pattern.ip_address} endpoint={pattern.endpoint}"
        )
        if severity == "critical":
            logger.error("Security alert: %s (%s) %s", activity_type, extra, details)
        elif severity == "high":
            logger.warning("Suspicious activity: %s (%s)", activity_type, extra)
        else:
            logger.info("Suspicious activity: %s (%s)", activity_type, extra)
        return activity

    # ------------------------------------------------------------------
    # Rate limiting and metrics
    # ------------------------------------------------------------------

    def should_rate_limit(
        self, user_id: Optional[str] = None, ip_address: Optional[str] = None
    ) -> bool:
        """True after repeated injection attempts or sustained excessive querying.

        Matches on user id or IP address; an unknown (None) id never matches.
        """

        def same_caller(other_user: Optional[str], other_ip: Optional[str]) -> bool:
            return (user_id is not None and other_user == user_id) or (
                ip_address is not None and other_ip == ip_address
            )

        cutoff = self.now() - RATE_LIMIT_WINDOW

        injection_attempts = [
            a
            for a in self.store.activities()
            if a.timestamp >= cutoff
            and a.type == "sql_injection_attempt"
            and same_caller(a.user_id, a.ip_address)
        ]
        if len(injection_attempts) >= self.sql_injection_threshold:
            return True

        recent_queries = [
            q
            for q in self.store.queries()
            if q.timestamp >= cutoff and same_caller(q.user_id, q.ip_address)
        ]
        # rapid threshold is per minute; the window is ten minutes
        return len(recent_queries) > self.rapid_query_threshold * 10

    def get_security_metrics(self) -> SecurityMetrics:
        cutoff = self.now() - METRICS_WINDOW
        recent = [a for a in self.store.activities() if a.timestamp >= cutoff]

        per_user = Counter(a.user_id for a in recent if a.user_id)
        top_users = [
            UserActivityCount(user_id=user_id, count=count)
            for user_id, count in per_user.most_common(10)
        ]

        return SecurityMetrics(
            total_queries=len(self.store.queries()),
            suspicious_activities=len(recent),
            critical_alerts=sum(1 for a in recent if a.severity == "critical"),
            top_suspicious_users=top_users,
            recent_alerts=recent[-10:],
        )
