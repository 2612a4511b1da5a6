"""Application metrics using the Prometheus client library.

Every metric the service exposes is declared here; other modules import
the one they need and increment/observe it at the point of action.

  COUNTER   only goes up (requests served, transitions applied)
  GAUGE     goes up and down (requests in flight)
  HISTOGRAM buckets observations so Prometheus can compute percentiles
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (recorded by MetricsMiddleware)
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
# Progress metrics (recorded by the progress store and event sinks)
# ---------------------------------------------------------------------------

PROGRESS_TRANSITIONS = Counter(
    "progress_transitions_total",
    "Component progress status transitions applied",
    ["from_status", "to_status"],
)

PROGRESS_REJECTIONS = Counter(
    "progress_updates_rejected_total",
    "Component progress updates rejected by the state machine",
    ["reason"],  # invalid_transition|attempts_exceeded|validation_error|not_found
)

EVENT_SINK_FAILURES = Counter(
    "progress_event_sink_failures_total",
    "Progress events that could not be delivered to the sink",
)

SESSIONS_INSTANTIATED = Counter(
    "training_sessions_instantiated_total",
    "Training sessions created from a template",
)
