"""Prometheus metric inventory.

Every metric the service exports is defined here; the modules that own
the behaviour import and increment them. Prometheus scrapes GET /metrics.

Label values are always drawn from small fixed sets. Credential ids,
external ids and batch ids never become label values: with thousands of
guests each one would create its own time series.
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
    # A door scan should feel instant; anything past 1s is a queue at the door.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Check-in domain metrics
# ---------------------------------------------------------------------------

REDEMPTION_OUTCOMES = Counter(
    "checkin_redemptions_total",
    "Redemption attempts by outcome",
    ["outcome"],  # accepted|already_redeemed|unknown_credential|malformed_credential
)

REGISTRATION_OUTCOMES = Counter(
    "checkin_registrations_total",
    "Single registrations by outcome",
    ["outcome"],  # created|duplicate
)

BULK_IMPORT_ROWS = Counter(
    "checkin_bulk_import_rows_total",
    "Bulk import rows by result",
    ["result"],  # added|already_registered|duplicate_within_import
)

STORE_ERRORS = Counter(
    "checkin_store_errors_total",
    "Record store calls that timed out or failed in transport",
    ["operation"],
)
