"""
Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.

Metrics exposed:
- fundledger_postings_total: Transactions posted, by transaction type
- fundledger_voids_total: Transactions voided, by status voided from
- fundledger_payments_total: Payments recorded against bills/invoices
- fundledger_concurrent_conflicts_total: Lost optimistic-lock races, by operation
- fundledger_rebuilds_total: Balance rebuilds, by result
- fundledger_rebuild_duration_seconds: Balance rebuild duration histogram
- fundledger_transactions: Transactions by type and status (collected on scrape)
- fundledger_request_duration_seconds: HTTP request duration histogram
"""
import logging
import re
import time

from django.db.models import Count
from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

_metrics_initialized = False

# Metric references (initialized lazily)
_postings_total = None
_voids_total = None
_payments_total = None
_conflicts_total = None
_rebuilds_total = None
_rebuild_duration = None
_transactions = None
_request_duration = None
_active_requests = None


def _init_prometheus():
    """Register metrics with the default registry once per process."""
    global _metrics_initialized
    global _postings_total, _voids_total, _payments_total, _conflicts_total
    global _rebuilds_total, _rebuild_duration, _transactions
    global _request_duration, _active_requests

    if _metrics_initialized:
        return

    _postings_total = Counter(
        "fundledger_postings_total",
        "Transactions posted to the general ledger",
        ["transaction_type"],
    )
    _voids_total = Counter(
        "fundledger_voids_total",
        "Transactions voided",
        ["from_status"],
    )
    _payments_total = Counter(
        "fundledger_payments_total",
        "Payments recorded against bills and invoices",
        ["transaction_type", "result_status"],
    )
    _conflicts_total = Counter(
        "fundledger_concurrent_conflicts_total",
        "Operations rejected because of a concurrent modification",
        ["operation"],
    )
    _rebuilds_total = Counter(
        "fundledger_rebuilds_total",
        "Balance rebuilds from the posted-entry log",
        ["result"],
    )
    _rebuild_duration = Histogram(
        "fundledger_rebuild_duration_seconds",
        "Balance rebuild duration in seconds",
        buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
    )
    _transactions = Gauge(
        "fundledger_transactions",
        "Transactions by type and status",
        ["transaction_type", "status"],
    )
    _request_duration = Histogram(
        "fundledger_request_duration_seconds",
        "HTTP request duration in seconds",
        ["method", "endpoint", "status"],
        buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    _active_requests = Gauge(
        "fundledger_active_requests",
        "Number of requests currently being processed",
    )

    _metrics_initialized = True
    logger.info("Prometheus metrics initialized")


def record_posting(transaction_type: str) -> None:
    _init_prometheus()
    _postings_total.labels(transaction_type=transaction_type).inc()


def record_void(from_status: str) -> None:
    _init_prometheus()
    _voids_total.labels(from_status=from_status).inc()


def record_payment(transaction_type: str, result_status: str) -> None:
    _init_prometheus()
    _payments_total.labels(
        transaction_type=transaction_type,
        result_status=result_status,
    ).inc()


def record_conflict(operation: str) -> None:
    _init_prometheus()
    _conflicts_total.labels(operation=operation).inc()


def record_rebuild(result: str, duration_seconds: float) -> None:
    _init_prometheus()
    _rebuilds_total.labels(result=result).inc()
    _rebuild_duration.observe(duration_seconds)


def collect_metrics():
    """Refresh gauges that are computed from the database at scrape time."""
    _init_prometheus()

    from ledger.models import Transaction

    counts = (
        Transaction.objects
        .values("transaction_type", "status")
        .annotate(count=Count("id"))
    )
    for row in counts:
        _transactions.labels(
            transaction_type=row["transaction_type"],
            status=row["status"],
        ).set(row["count"])


def get_prometheus_response():
    """Generate Prometheus metrics response."""
    try:
        collect_metrics()
    except Exception as e:
        # A database hiccup should not take the counters down with it.
        logger.error(f"Error collecting metrics: {e}")

    output = generate_latest()
    return HttpResponse(output, content_type=CONTENT_TYPE_LATEST)


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        return get_prometheus_response()


def _normalize_endpoint(path: str) -> str:
    endpoint = re.sub(r"/\d+/", "/{id}/", path)
    return endpoint[:50]


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """
    _init_prometheus()

    def middleware(request):
        start = time.time()
        _active_requests.inc()
        status_class = "5xx"

        try:
            response = get_response(request)
            status_class = f"{response.status_code // 100}xx"
            return response
        finally:
            _active_requests.dec()
            _request_duration.labels(
                method=request.method,
                endpoint=_normalize_endpoint(request.path),
                status=status_class,
            ).observe(time.time() - start)

    return middleware
