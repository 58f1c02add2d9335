"""Prometheus metric inventory for the classroom service.

Every metric the service exposes is declared here; the owning module
imports it and increments at the point of action.

HTTP metrics are filled in by MetricsMiddleware.  Domain metrics answer
the operational questions the enrollment engine raises:

  - How often are adds refused because a class is full?
    rate(enrollment_operations_total{outcome="capacity_exceeded"}[5m])
  - Are students resubmitting completed activities?
    attempt_transitions_total{transition="submit_rejected"}
  - Is the progress cache earning its keep?
    cache_operations_total{operation="hit"} / sum(cache_operations_total)
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Enrollment engine metrics
# ---------------------------------------------------------------------------

ENROLLMENT_OPERATIONS = Counter(
    "enrollment_operations_total",
    "Membership writes by operation and outcome",
    ["operation", "outcome"],  # add|remove|patch , ok|<error code>
)

ATTEMPT_TRANSITIONS = Counter(
    "attempt_transitions_total",
    "Attempt state-machine transitions",
    ["transition"],  # start|resume|submit|abandon|admin_update|submit_rejected
)

STATS_DELTAS_APPLIED = Counter(
    "stats_deltas_applied_total",
    "Stats deltas written into enrollment records",
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Progress cache get operations by result",
    ["operation"],  # "hit" or "miss"
)
