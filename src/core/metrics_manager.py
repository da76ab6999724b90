import logging
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class MetricsManager:
    """
    Per-process request metrics for a backend instance.

    Each manager owns its own CollectorRegistry so several apps (and tests)
    can live in one interpreter without duplicate-timeseries errors.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.IN_FLIGHT = Gauge(
            "in_flight_requests", "Number of requests in flight", registry=self.registry
        )
        self.REQUESTS = Counter(
            "http_requests",
            "Requests served",
            ["path", "status"],
            registry=self.registry,
        )
        self.REQ_LATENCY = Histogram(
            "request_latency_seconds", "Request latency in seconds", registry=self.registry
        )
        logger.info("MetricsManager initialized.")

    async def prometheus_middleware(self, request, call_next):
        """
        Middleware for tracking request metrics and updating Prometheus gauges/histograms.
        """
        start = time.time()
        self.IN_FLIGHT.inc()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed = time.time() - start
            self.IN_FLIGHT.dec()
            self.REQ_LATENCY.observe(elapsed)
            self.REQUESTS.labels(path=request.url.path, status=str(status)).inc()
            logger.debug(f"Request processed in {elapsed:.4f}s. In-flight: {self.get_in_flight()}")

    def get_in_flight(self) -> float:
        return self.IN_FLIGHT._value.get()

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST


class RoutingMetrics:
    """
    Metrics for the routing layer: where requests went and what the probes saw.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.ROUTED = Counter(
            "lb_routed_requests",
            "Requests forwarded, by backend and upstream status",
            ["backend", "status"],
            registry=self.registry,
        )
        self.REJECTED = Counter(
            "lb_rejected_requests",
            "Requests rejected because no healthy backend was available",
            registry=self.registry,
        )
        self.PROBES = Counter(
            "lb_probes",
            "Health probes by backend and outcome",
            ["backend", "outcome"],
            registry=self.registry,
        )
        self.HEALTHY = Gauge(
            "lb_healthy_backends", "Number of backends currently healthy", registry=self.registry
        )

    def record_routed(self, backend_url: str, status_code: int):
        self.ROUTED.labels(backend=backend_url, status=str(status_code)).inc()

    def record_rejected(self):
        self.REJECTED.inc()

    def record_probe(self, backend_url: str, outcome: str):
        self.PROBES.labels(backend=backend_url, outcome=outcome).inc()

    def set_healthy(self, count: int):
        self.HEALTHY.set(count)

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
