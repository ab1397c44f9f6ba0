"""
Prometheus Metrics

Metrics collection for the bookstore services.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("bookstore_app", "Bookstore application information")

# Idempotency metrics
idempotency_requests_counter = Counter(
    "idempotency_requests_total",
    "Idempotent write requests by outcome",
    ["outcome"],  # executed, replayed, conflict, failed, bypassed, store_unavailable, unencodable
)

idempotency_stale_recoveries_counter = Counter(
    "idempotency_stale_recoveries_total",
    "In-progress records taken over after exceeding the staleness threshold",
)

idempotency_operation_duration = Histogram(
    "idempotency_operation_duration_seconds",
    "Duration of operations executed under an idempotency key",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

idempotency_records_purged_counter = Counter(
    "idempotency_records_purged_total",
    "Expired idempotency records removed from the SQL store",
)

# Event metrics
events_published_counter = Counter(
    "events_published_total",
    "Domain events handed to the message bus",
    ["event_type", "status"],  # sent, error
)

events_consumed_counter = Counter(
    "events_consumed_total",
    "Domain events consumed from the message bus",
    ["event_type", "outcome"],  # processed, duplicate
)

# Domain metrics
books_written_counter = Counter(
    "bookstore_books_written_total",
    "Book rows inserted or updated",
    ["operation"],
)

users_written_counter = Counter(
    "bookstore_users_written_total",
    "User rows inserted or updated",
    ["operation"],
)

low_stock_alerts_counter = Counter(
    "bookstore_low_stock_alerts_total",
    "Active books found below the low-stock threshold by the maintenance job",
)

# Cache metrics
entity_cache_counter = Counter(
    "entity_cache_requests_total",
    "Entity cache lookups",
    ["entity", "result"],  # hit, miss, error
)

# API metrics
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status_code"],
)

api_request_duration = Histogram(
    "api_request_duration_seconds",
    "API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def initialize_metrics(app_name: str, version: str) -> None:
    """Initialize application metrics."""
    app_info.info({
        "app_name": app_name,
        "version": version,
    })
