from abc import ABC, abstractmethod
from typing import List, Optional

from contracts.backend import BackendInstance
from contracts.health import HealthCheckResult, HealthState


class Registry(ABC):
    """
    Abstract base class for the backend health table shared by the health
    monitor (writer) and the load balancer (reader).
    """

    @abstractmethod
    async def register(self, backend: BackendInstance) -> BackendInstance:
        """
        Register a backend service. Re-registering an existing URL keeps its health state.

        Args:
            backend (BackendInstance): The backend instance to register.

        Returns:
            BackendInstance: The tracked instance.
        """

    @abstractmethod
    async def unregister(self, backend_url: str) -> Optional[BackendInstance]:
        """
        Stop tracking a backend service.

        Args:
            backend_url (str): The URL of the backend to remove.

        Returns:
            Optional[BackendInstance]: The removed instance, or None if it was not registered.
        """

    @abstractmethod
    async def list_backends(self) -> List[BackendInstance]:
        """
        Return a snapshot of all registered backends and their health.

        Returns:
            List[BackendInstance]: Copies of the registered backend objects.
        """

    @abstractmethod
    async def get_backend(self, backend_url: str) -> Optional[BackendInstance]:
        """
        Return a snapshot of one backend, or None if it is not registered.
        """

    @abstractmethod
    async def healthy_backends(self) -> List[BackendInstance]:
        """
        Return a snapshot of backends eligible for traffic.
        """

    @abstractmethod
    async def is_backend_healthy(self, backend_url: str) -> bool:
        """
        Check if a specific backend is healthy by its URL.

        Args:
            backend_url (str): The URL of the backend to check.

        Returns:
            bool: True if backend exists and is healthy, False otherwise.
        """

    @abstractmethod
    async def record_probe_result(self, result: HealthCheckResult, policy) -> Optional[HealthState]:
        """
        Apply a probe result to the backend's counters and state using ``policy``.

        Args:
            result (HealthCheckResult): The probe outcome.
            policy (HealthPolicy): Hysteresis thresholds to apply.

        Returns:
            Optional[HealthState]: The new state, or None if the backend is not registered.
        """

    @abstractmethod
    async def reset_health(self) -> None:
        """
        Forget all health knowledge: every backend goes back to UNKNOWN.
        """

    @abstractmethod
    async def acquire_connection(self, backend_url: str) -> None:
        """
        Count one more request in flight to ``backend_url``.
        """

    @abstractmethod
    async def release_connection(self, backend_url: str) -> None:
        """
        Count one request to ``backend_url`` as finished.
        """
