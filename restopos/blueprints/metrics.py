"""
Prometheus metrics for the POS backend.

Request latency/throughput for every endpoint, plus business counters for
checkout sessions and Stripe webhook deliveries. Scrape /metrics from the
internal network only; it is not authenticated.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are aggregated at scrape time
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    scrape_registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(scrape_registry)
else:
    scrape_registry = REGISTRY

# Endpoints left out of request metrics
UNTRACKED_ENDPOINTS = {'metrics.metrics', 'main.health', 'static'}

pos_requests_total = Counter(
    'pos_http_requests_total',
    'HTTP requests handled by the POS backend',
    ['method', 'endpoint', 'http_status']
)

pos_request_seconds = Histogram(
    'pos_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

pos_requests_in_flight = Gauge(
    'pos_http_requests_in_flight',
    'HTTP requests currently being processed',
    multiprocess_mode='livesum'
)

checkout_sessions_total = Counter(
    'pos_checkout_sessions_total',
    'Checkout session attempts by outcome',
    ['outcome', 'with_coupon']
)

webhook_events_total = Counter(
    'pos_stripe_webhook_events_total',
    'Stripe webhook deliveries by outcome',
    ['outcome']
)


def setup_metrics_instrumentation(app):
    """Time every tracked request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        if request.endpoint in UNTRACKED_ENDPOINTS:
            return
        g._pos_request_started = time.perf_counter()
        pos_requests_in_flight.inc()

    @app.after_request
    def record_request(response):
        started = g.pop('_pos_request_started', None)
        if started is None:
            return response

        try:
            endpoint = request.endpoint or 'unknown'
            pos_request_seconds.labels(method=request.method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )
            pos_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                http_status=response.status_code
            ).inc()
            pos_requests_in_flight.dec()
        except Exception as e:
            # Metrics must never break a response
            app.logger.warning(f"Failed to record metrics: {e}")

        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus exposition (aggregated across workers in multiprocess mode)."""
    return Response(generate_latest(scrape_registry), mimetype=CONTENT_TYPE_LATEST)
