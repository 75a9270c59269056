"""Prometheus metric inventory for the backpack service.

All metrics are defined here; the modules that own the behaviour import
and update them.  /metrics exposes them in the text exposition format.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Badge pipeline metrics
# ---------------------------------------------------------------------------

BADGE_UPLOADS = Counter(
    "badge_uploads_total",
    "Badge upload attempts by outcome",
    # created | existing | or the failure class name (EmptyUpload, ...)
    ["outcome"],
)

ASSERTION_FETCH_DURATION = Histogram(
    "assertion_fetch_duration_seconds",
    "Time spent retrieving hosted assertions from issuers",
    ["result"],  # ok | error
    # Issuers are remote and slow; the fetch timeout caps the top bucket.
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

SECURITY_REJECTIONS = Counter(
    "security_rejections_total",
    "Requests rejected for security reasons",
    ["reason"],  # recipient_mismatch | forbidden_delete | identity_unverified
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # "user" or "ip"
)
