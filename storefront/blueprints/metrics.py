"""
Prometheus metrics for the storefront.

HTTP request metrics are collected by app hooks; stock, cart, checkout and
payment counters are bumped by the services through the count_* helpers.
/metrics is unauthenticated and must only be reachable from the monitoring
network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

# HTTP
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Requests currently being served',
    registry=_metric_registry
)

# Inventory ledger
inventory_transactions_total = Counter(
    'inventory_transactions_total',
    'Stock movements written to the inventory ledger',
    ['type'],
    registry=_metric_registry
)

insufficient_stock_total = Counter(
    'inventory_insufficient_stock_total',
    'Stock movements rejected because stock would go negative',
    ['type'],
    registry=_metric_registry
)

# Carts, orders, payments
cart_saves_total = Counter(
    'cart_saves_total',
    'Cart writes to client storage',
    ['result'],
    registry=_metric_registry
)

checkouts_total = Counter(
    'checkouts_total',
    'Checkout attempts',
    ['outcome'],
    registry=_metric_registry
)

payment_transactions_total = Counter(
    'payment_transactions_total',
    'Payment and refund rows recorded against orders',
    ['transaction_type', 'status'],
    registry=_metric_registry
)


def count_inventory_transaction(kind):
    inventory_transactions_total.labels(type=kind).inc()


def count_insufficient_stock(kind):
    insufficient_stock_total.labels(type=kind).inc()


def count_cart_save(ok):
    cart_saves_total.labels(result='ok' if ok else 'failed').inc()


def count_checkout(outcome):
    checkouts_total.labels(outcome=outcome).inc()


def count_payment_transaction(transaction_type, status):
    payment_transactions_total.labels(transaction_type=transaction_type, status=(status or '').lower()).inc()


def _endpoint_label():
    # Route names keep label cardinality bounded (no raw ids in paths)
    return request.endpoint or 'unknown'


def setup_metrics_instrumentation(app):
    """Register request hooks that feed the HTTP metrics."""

    @app.before_request
    def start_request_timer():
        g._metrics_started_at = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request_metrics(response):
        started_at = g.pop('_metrics_started_at', None)
        if started_at is None:
            return response
        try:
            endpoint = _endpoint_label()
            http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
                time.time() - started_at
            )
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, http_status=response.status_code
            ).inc()
            http_requests_in_flight.dec()
        except Exception as e:
            # Metrics never fail a request
            app.logger.warning(f"[METRICS] Failed to record request metrics: {e}")
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus exposition (all workers in multiprocess mode)."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
