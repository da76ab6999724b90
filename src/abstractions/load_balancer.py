from abc import ABC, abstractmethod
from typing import Optional

from contracts.routing import RoutingDecision


class LoadBalancer(ABC):
    """
    Abstract base class for load balancers. Implementations should support selecting
    the next healthy backend for routing requests.
    """

    #: Short policy name reported in routing decisions.
    policy_name = "custom"

    @abstractmethod
    async def get_next_backend(self) -> Optional[RoutingDecision]:
        """
        Pick the backend for one request.

        Returns:
            Optional[RoutingDecision]: The decision for a healthy backend, or None if
            no backend is healthy.
        """
        pass
