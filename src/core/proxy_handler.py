import asyncio
import logging
from typing import Optional

import httpx
from fastapi import Request, Response

from abstractions.load_balancer import LoadBalancer
from abstractions.registry import Registry
from contracts.routing import RoutingDecision
from core.metrics_manager import RoutingMetrics
from core.profiler import Profiler

logger = logging.getLogger(__name__)

# Headers that describe a single hop and must not be forwarded as-is.
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}
# httpx already decoded the body, so the upstream encoding and length no longer apply.
STRIPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}


class ProxyHandler:
    """
    Forwards one client request to the backend picked by the load balancer.
    """

    @Profiler.profile
    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: Optional[Registry] = None,
        load_balancer: Optional[LoadBalancer] = None,
        forward_timeout: float = 10.0,
        retry_on_connect_error: bool = False,
        metrics: Optional[RoutingMetrics] = None,
    ):
        """
        Args:
            client (httpx.AsyncClient): Client used for upstream requests.
            registry (Optional[Registry]): Health table, re-checked before forwarding and
                used to count active connections.
            load_balancer (Optional[LoadBalancer]): Used to pick another backend when
                ``retry_on_connect_error`` is enabled.
            forward_timeout (float): Upstream timeout in seconds.
            retry_on_connect_error (bool): Retry once per other healthy backend when the
                selected one refuses the connection. Timeouts are never retried.
            metrics (Optional[RoutingMetrics]): Routing counters.
        """
        self.client = client
        self.registry = registry
        self.load_balancer = load_balancer
        self.forward_timeout = forward_timeout
        self.retry_on_connect_error = retry_on_connect_error
        self.metrics = metrics

    @Profiler.profile
    async def handle_proxy(
        self, request: Request, path: str, decision: Optional[RoutingDecision]
    ) -> Response:
        """
        Proxy an incoming HTTP request to the backend named by ``decision``.

        Args:
            request (Request): The incoming FastAPI request object.
            path (str): The path to append to the backend URL.
            decision (Optional[RoutingDecision]): Where to send it; None means no backend is healthy.

        Returns:
            Response: The backend's response, or a 502/503/504 error response.
        """
        if decision is None:
            logger.error("No healthy backend available. Returning 503.")
            if self.metrics:
                self.metrics.record_rejected()
            return Response(content="No healthy backend available.", status_code=503)

        backend_url = decision.backend_url
        # The decision may be a few awaits old; never forward to a backend that went down meanwhile.
        if self.registry and not await self.registry.is_backend_healthy(backend_url):
            logger.warning(f"Rejecting request to unhealthy backend {backend_url}")
            if self.metrics:
                self.metrics.record_rejected()
            return Response(content="Backend temporarily unavailable.", status_code=503)

        method = request.method
        # A list of pairs keeps repeated headers.
        headers = [
            (k, v) for k, v in request.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS
        ]
        if request.client is not None and request.client.host:
            chain = [v for k, v in headers if k.lower() == "x-forwarded-for"]
            chain.append(str(request.client.host))
            headers = [(k, v) for k, v in headers if k.lower() != "x-forwarded-for"]
            headers.append(("x-forwarded-for", ", ".join(chain)))
        body = await request.body()

        tried = set()
        while True:
            tried.add(backend_url)
            url = f"{backend_url.rstrip('/')}/{path.lstrip('/')}"
            logger.info(f"Proxying {method} request to {url}")
            try:
                resp = await self._forward(backend_url, method, url, headers, body, request)
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                logger.error(f"Upstream timeout from {backend_url}", exc_info=e)
                self._count(backend_url, 504)
                detail = str(e) or f"no response in {self.forward_timeout}s"
                return Response(content=f"Upstream timeout: {detail}", status_code=504)
            except httpx.ConnectError as e:
                logger.error(f"Upstream connection error from {backend_url}", exc_info=e)
                next_url = await self._retry_target(tried)
                if next_url is None:
                    self._count(backend_url, 502)
                    return Response(content=f"Upstream error: {e!r}", status_code=502)
                logger.warning(f"Retrying request on {next_url} after connect error on {backend_url}")
                backend_url = next_url
                continue
            except httpx.RequestError as e:
                logger.error(f"Upstream request error from {backend_url}", exc_info=e)
                self._count(backend_url, 502)
                return Response(content=f"Upstream error: {e!r}", status_code=502)

            logger.info(f"Received response from backend {backend_url}: {resp.status_code}")
            self._count(backend_url, resp.status_code)
            response = Response(content=resp.content, status_code=resp.status_code)
            for k, v in resp.headers.multi_items():
                if k.lower() not in STRIPPED_RESPONSE_HEADERS:
                    response.headers.append(k, v)
            return response

    async def _forward(self, backend_url, method, url, headers, body, request) -> httpx.Response:
        if self.registry:
            await self.registry.acquire_connection(backend_url)
        try:
            return await asyncio.wait_for(
                self.client.request(
                    method,
                    url,
                    headers=headers,
                    content=body,
                    params=request.query_params,
                    timeout=self.forward_timeout,
                ),
                self.forward_timeout,
            )
        finally:
            if self.registry:
                await self.registry.release_connection(backend_url)

    async def _retry_target(self, tried: set) -> Optional[str]:
        if not self.retry_on_connect_error or self.load_balancer is None:
            return None
        # One pass over the rotation is enough to see every healthy backend.
        candidates = len(await self.registry.healthy_backends()) if self.registry else len(tried) + 1
        for _ in range(candidates):
            decision = await self.load_balancer.get_next_backend()
            if decision is None:
                return None
            if decision.backend_url not in tried:
                return decision.backend_url
        return None

    def _count(self, backend_url: str, status_code: int):
        if self.metrics:
            self.metrics.record_routed(backend_url, status_code)
