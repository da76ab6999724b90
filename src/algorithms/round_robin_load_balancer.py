import logging
from typing import Optional

from abstractions.load_balancer import LoadBalancer
from abstractions.registry import Registry
from contracts.routing import RoutingDecision
from core.profiler import Profiler

logger = logging.getLogger(__name__)


class RoundRobinLoadBalancer(LoadBalancer):
    """
    Load balancer that selects healthy backends in a round-robin fashion.
    """

    policy_name = "round_robin"

    @Profiler.profile
    def __init__(self, registry: Registry):
        """
        Initialize the RoundRobinLoadBalancer.

        Args:
            registry: The backend registry instance to use for retrieving backends.
        """
        self.registry = registry
        self._next_index = 0
        logger.info("RoundRobinLoadBalancer initialized.")

    @Profiler.profile
    async def get_next_backend(self) -> Optional[RoutingDecision]:
        """
        Select the next healthy backend using round-robin selection.

        Returns:
            Optional[RoutingDecision]: The decision, or None if no healthy backend is available.
        """
        # Sort by (url, port) for stable, predictable order
        backends = sorted(
            await self.registry.healthy_backends(),
            key=lambda b: (b.url, b.port or 0),
        )
        if not backends:
            logger.warning("No healthy backends available for round robin.")
            return None
        # No await between reading and advancing the cursor, so concurrent
        # requests on the event loop each get a distinct slot.
        backend = backends[self._next_index % len(backends)]
        self._next_index = (self._next_index + 1) % len(backends)
        logger.info(f"Selected backend (round robin): {backend.url}")
        return RoutingDecision(backend_url=backend.url, policy=self.policy_name)
