import importlib
import logging
from contextlib import asynccontextmanager
from typing import Any, Iterable, Optional, Type

import httpx
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import ORJSONResponse

from abstractions.load_balancer import LoadBalancer
from abstractions.registry import Registry
from algorithms.least_connections_load_balancer import LeastConnectionsLoadBalancer
from algorithms.round_robin_load_balancer import RoundRobinLoadBalancer
from config.config import Config
from config.logging_config import setup_logging
from contracts.backend import BackendInstance, RegistrationRequest, RegistrationResponse
from core.backend_registry import BackendRegistry
from core.health_monitor import HealthMonitor
from core.health_policy import HealthPolicy
from core.metrics_manager import RoutingMetrics
from core.proxy_handler import ProxyHandler

setup_logging()
logger = logging.getLogger(__name__)

# Built-in load balancer classes
LB_CLASSES = {
    "default": RoundRobinLoadBalancer,
    "round_robin": RoundRobinLoadBalancer,
    "least_connections": LeastConnectionsLoadBalancer,
}


def import_from_string(path: str) -> Type[Any]:
    module_name, class_name = path.rsplit(".", 1)
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


def load_balancer_factory(registry: Registry, key: Optional[str] = None) -> LoadBalancer:
    key = key or getattr(Config, "LOAD_BALANCER_CLASS", "default")
    if key in LB_CLASSES:
        logger.info(f"Using built-in load balancer class: {key}")
        return LB_CLASSES[key](registry)
    try:
        logger.info(f"Importing load balancer class from string: {key}")
        return import_from_string(key)(registry)
    except (ImportError, AttributeError, ValueError) as e:
        logger.error(f"Could not import load balancer class '{key}': {e}")
        raise ImportError(f"Could not import load balancer class '{key}': {e}") from e


def _backend_from_url(url: str, port: Optional[int] = None) -> BackendInstance:
    url = Config.normalize_backend_url(url, port)
    return BackendInstance(url=url, port=httpx.URL(url).port)


def create_app(
    backend_urls: Iterable[str] = (),
    registry: Optional[Registry] = None,
    load_balancer: Optional[LoadBalancer] = None,
    monitor: Optional[HealthMonitor] = None,
    client: Optional[httpx.AsyncClient] = None,
    metrics: Optional[RoutingMetrics] = None,
) -> FastAPI:
    """
    Build the routing layer app.

    The registry, balancer and monitor are created here and live as long as the
    app; the lifespan registers ``backend_urls``, starts the monitor and tears
    everything down on shutdown.
    """
    registry = registry or BackendRegistry()
    metrics = metrics or RoutingMetrics()
    load_balancer = load_balancer or load_balancer_factory(registry)
    monitor = monitor or HealthMonitor(
        registry,
        policy=HealthPolicy(
            unhealthy_threshold=Config.LB_UNHEALTHY_THRESHOLD,
            healthy_threshold=Config.LB_HEALTHY_THRESHOLD,
        ),
        probe_interval=Config.LB_PROBE_INTERVAL,
        probe_timeout=Config.LB_PROBE_TIMEOUT,
        health_path=Config.BACKEND_HEALTH_PATH,
        metrics=metrics,
    )
    owns_client = client is None
    client = client or httpx.AsyncClient()
    proxy_handler = ProxyHandler(
        client,
        registry=registry,
        load_balancer=load_balancer,
        forward_timeout=Config.LB_FORWARD_TIMEOUT,
        retry_on_connect_error=Config.LB_RETRY_ON_CONNECT_ERROR,
        metrics=metrics,
    )
    initial_backends = list(backend_urls)

    @asynccontextmanager
    async def lifespan(app):
        for url in initial_backends:
            await registry.register(_backend_from_url(url))
        await monitor.start()
        yield
        await monitor.stop()
        if owns_client:
            await client.aclose()

    app = FastAPI(lifespan=lifespan, default_response_class=ORJSONResponse)
    app.state.registry = registry
    app.state.load_balancer = load_balancer
    app.state.monitor = monitor
    app.state.proxy_handler = proxy_handler
    app.state.metrics = metrics

    @app.post("/lb/register", response_model=RegistrationResponse)
    async def register_backend(data: RegistrationRequest):
        logger.info(f"Registering backend: {data}")
        tracked = await registry.register(_backend_from_url(data.url, data.port))
        monitor.watch(tracked.url)
        return RegistrationResponse(status="registered", backend=tracked)

    @app.post("/lb/unregister", response_model=RegistrationResponse)
    async def unregister_backend(data: RegistrationRequest):
        logger.info(f"Unregistering backend: {data}")
        url = Config.normalize_backend_url(data.url, data.port)
        removed = await registry.unregister(url)
        await monitor.unwatch(url)
        if removed is None:
            return ORJSONResponse({"error": f"Backend {url} is not registered."}, status_code=404)
        return RegistrationResponse(status="unregistered", backend=removed)

    @app.get("/lb/backends")
    async def list_backends():
        backends = await registry.list_backends()
        return {"backends": [b.model_dump(mode="json") for b in backends]}

    @app.get("/lb/health")
    async def lb_health():
        healthy = len(await registry.healthy_backends())
        body = {"status": "ok" if healthy else "unavailable", "healthy_backends": healthy}
        return ORJSONResponse(body, status_code=200 if healthy else 503)

    @app.get("/lb/metrics")
    def lb_metrics():
        content, media_type = metrics.render()
        return Response(content, media_type=media_type)

    @app.api_route(
        "/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]
    )
    async def proxy(request: Request, path: str):
        decision = await load_balancer.get_next_backend()
        logger.info(
            f"Routing request for path '{path}' to backend: "
            f"{decision.backend_url if decision else None}"
        )
        return await proxy_handler.handle_proxy(request, path, decision)

    return app


app = create_app(Config.backend_urls())


def run():
    """
    Serve the routing layer on LB_LISTEN_PORT.
    """
    uvicorn.run(app, host="0.0.0.0", port=Config.LB_LISTEN_PORT, log_config=None)


if __name__ == "__main__":
    run()
