import asyncio
import logging
from typing import Dict, List, Optional

from abstractions.registry import Registry
from contracts.backend import BackendInstance
from contracts.health import HealthCheckResult, HealthState
from core.health_policy import HealthPolicy
from core.profiler import Profiler

logger = logging.getLogger(__name__)


class BackendRegistry(Registry):
    """
    In-memory registry of backend instances and their health state.

    A single asyncio lock guards the table: the health monitor writes through
    ``record_probe_result`` while request handlers read concurrently. Readers
    always get copies, never the live objects.
    """

    @Profiler.profile
    def __init__(self):
        # Use URL as key since it already contains host:port info
        self._backends: Dict[str, BackendInstance] = {}
        self._lock = asyncio.Lock()
        logger.info("BackendRegistry initialized.")

    @Profiler.profile
    async def register(self, backend: BackendInstance) -> BackendInstance:
        """
        Register a backend. Re-registering a known URL keeps the health it already has.

        Args:
            backend (BackendInstance): The backend instance to register.

        Returns:
            BackendInstance: A snapshot of the tracked instance.
        """
        async with self._lock:
            existing = self._backends.get(backend.url)
            if existing is None:
                self._backends[backend.url] = backend.model_copy()
                logger.info(f"Registered backend: {backend}")
            else:
                logger.info(f"Backend already registered, keeping state: {existing}")
            logger.debug(f"Current backends after register: {list(self._backends.values())}")
            return self._backends[backend.url].model_copy()

    @Profiler.profile
    async def unregister(self, backend_url: str) -> Optional[BackendInstance]:
        async with self._lock:
            removed = self._backends.pop(backend_url, None)
            if removed is None:
                logger.warning(f"Backend with URL {backend_url} not found in registry")
            else:
                logger.info(f"Unregistered backend: {removed}")
            return removed

    @Profiler.profile
    async def list_backends(self) -> List[BackendInstance]:
        async with self._lock:
            return [b.model_copy() for b in self._backends.values()]

    async def get_backend(self, backend_url: str) -> Optional[BackendInstance]:
        async with self._lock:
            backend = self._backends.get(backend_url)
            return backend.model_copy() if backend else None

    @Profiler.profile
    async def healthy_backends(self) -> List[BackendInstance]:
        async with self._lock:
            return [b.model_copy() for b in self._backends.values() if b.is_eligible]

    @Profiler.profile
    async def is_backend_healthy(self, backend_url: str) -> bool:
        async with self._lock:
            backend = self._backends.get(backend_url)
            if not backend:
                return False
            return backend.is_eligible

    @Profiler.profile
    async def record_probe_result(
        self, result: HealthCheckResult, policy: HealthPolicy
    ) -> Optional[HealthState]:
        """
        Apply one probe outcome to the backend's counters and state.

        Args:
            result (HealthCheckResult): The probe outcome.
            policy (HealthPolicy): Hysteresis thresholds.

        Returns:
            Optional[HealthState]: The new state, or None if the backend was unregistered meanwhile.
        """
        async with self._lock:
            backend = self._backends.get(result.backend_url)
            if backend is None:
                logger.debug(f"Dropping probe result for unregistered backend {result.backend_url}")
                return None
            previous = backend.state
            backend.last_probe_at = result.timestamp
            current = policy.apply(backend, result.outcome)
            if current != previous:
                if current == HealthState.UNHEALTHY:
                    logger.warning(
                        f"Health transition: {backend.url} {previous.value} -> {current.value} "
                        f"after {backend.consecutive_failures} consecutive probe failures"
                    )
                else:
                    logger.info(
                        f"Health transition: {backend.url} {previous.value} -> {current.value} "
                        f"after {backend.consecutive_successes} consecutive probe successes"
                    )
            return current

    async def reset_health(self) -> None:
        async with self._lock:
            for backend in self._backends.values():
                backend.state = HealthState.UNKNOWN
                backend.consecutive_successes = 0
                backend.consecutive_failures = 0
            logger.info(f"Health of {len(self._backends)} backends reset to unknown")

    async def acquire_connection(self, backend_url: str) -> None:
        async with self._lock:
            backend = self._backends.get(backend_url)
            if backend:
                backend.active_connections += 1

    async def release_connection(self, backend_url: str) -> None:
        async with self._lock:
            backend = self._backends.get(backend_url)
            if backend and backend.active_connections > 0:
                backend.active_connections -= 1
