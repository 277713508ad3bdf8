# Storefront monitoring configuration
# Prometheus metrics for HTTP traffic and the checkout flow

import time
from fastapi import FastAPI, Request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# HTTP metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])

# Checkout metrics
checkout_transitions = Counter(
    'checkout_transitions_total',
    'Checkout step transitions',
    ['step', 'direction', 'outcome']
)
order_submissions = Counter('order_submissions_total', 'Order submissions', ['outcome'])
promo_lookups = Counter('promo_lookups_total', 'Promo code lookups', ['outcome'])

def setup_monitoring_middleware(app: FastAPI):
    """Add monitoring middleware to track metrics"""

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        # Route template keeps session ids out of the label set
        endpoint = getattr(request.scope.get("route"), "path", request.url.path)

        request_count.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()

        request_duration.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(process_time)

        return response

def metrics_response() -> Response:
    """Render current metrics in Prometheus text format"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
