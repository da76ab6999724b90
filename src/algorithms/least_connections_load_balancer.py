import logging
from typing import Optional

from abstractions.load_balancer import LoadBalancer
from abstractions.registry import Registry
from contracts.routing import RoutingDecision
from core.profiler import Profiler

logger = logging.getLogger(__name__)


class LeastConnectionsLoadBalancer(LoadBalancer):
    """
    Selects the healthy backend with the fewest requests currently being forwarded.
    """

    policy_name = "least_connections"

    @Profiler.profile
    def __init__(self, registry: Registry):
        self.registry = registry

    @Profiler.profile
    async def get_next_backend(self) -> Optional[RoutingDecision]:
        backends = await self.registry.healthy_backends()
        if not backends:
            logger.warning("No healthy backends available for least connections.")
            return None
        backend = min(backends, key=lambda b: (b.active_connections, b.url, b.port or 0))
        logger.info(
            f"Selected backend (least connections): {backend.url} "
            f"active={backend.active_connections}"
        )
        return RoutingDecision(backend_url=backend.url, policy=self.policy_name)
