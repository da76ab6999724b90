import asyncio
import logging
from typing import Dict, Optional

import httpx

from abstractions.registry import Registry
from contracts.health import HealthCheckResult, HealthState, ProbeOutcome
from core.health_policy import HealthPolicy
from core.metrics_manager import RoutingMetrics
from core.profiler import Profiler

logger = logging.getLogger(__name__)


class HealthMonitor:
    """
    Periodically probes every registered backend and feeds the outcomes into
    the registry through a HealthPolicy.

    Each backend gets its own asyncio task, so a slow or dead backend never
    delays probing of the others.
    """

    def __init__(
        self,
        registry: Registry,
        policy: Optional[HealthPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        probe_interval: float = 30.0,
        probe_timeout: float = 3.0,
        health_path: str = "/health",
        metrics: Optional[RoutingMetrics] = None,
    ):
        """
        Args:
            registry (Registry): Shared health table to update.
            policy (Optional[HealthPolicy]): Hysteresis thresholds; defaults to 3 fails / 2 passes.
            client (Optional[httpx.AsyncClient]): HTTP client for probes. When omitted the
                monitor creates one on start and closes it on stop.
            probe_interval (float): Seconds between two probes of the same backend.
            probe_timeout (float): Seconds before a probe counts as failed.
            health_path (str): Path appended to the backend URL for probes.
            metrics (Optional[RoutingMetrics]): Where to count probe outcomes.
        """
        self.registry = registry
        self.policy = policy or HealthPolicy()
        self.client = client
        self._owns_client = client is None
        self.probe_interval = probe_interval
        self.probe_timeout = probe_timeout
        self.health_path = health_path
        self.metrics = metrics
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False
        logger.info(
            f"HealthMonitor initialized: interval={probe_interval}s timeout={probe_timeout}s "
            f"unhealthy_threshold={self.policy.unhealthy_threshold} "
            f"healthy_threshold={self.policy.healthy_threshold}"
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def watched(self) -> list[str]:
        return sorted(url for url, task in self._tasks.items() if not task.done())

    async def start(self):
        """
        Forget previous health knowledge and start one probe loop per registered backend.
        """
        if self._running:
            return
        if self.client is None:
            self.client = httpx.AsyncClient()
            self._owns_client = True
        self._running = True
        await self.registry.reset_health()
        for backend in await self.registry.list_backends():
            self.watch(backend.url)
        logger.info(f"Health monitor started for {len(self._tasks)} backends.")

    async def stop(self):
        """
        Cancel all probe loops and wait for them to finish.
        """
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None
        logger.info("Health monitor stopped.")

    def watch(self, backend_url: str):
        """
        Start probing ``backend_url`` if it is not probed already.
        """
        if not self._running:
            return
        task = self._tasks.get(backend_url)
        if task is not None and not task.done():
            return
        self._tasks[backend_url] = asyncio.create_task(
            self._probe_loop(backend_url), name=f"probe:{backend_url}"
        )
        logger.info(f"Watching backend {backend_url}")

    async def unwatch(self, backend_url: str):
        task = self._tasks.pop(backend_url, None)
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info(f"Stopped watching backend {backend_url}")

    @Profiler.profile
    async def probe(self, backend_url: str) -> HealthCheckResult:
        """
        Send one health probe. Any non-2xx status, timeout or transport error is a failure.
        """
        url = f"{backend_url.rstrip('/')}{self.health_path}"
        client = self.client or httpx.AsyncClient()
        try:
            # httpx timeouts are per phase; wait_for caps the whole probe.
            resp = await asyncio.wait_for(
                client.get(url, timeout=self.probe_timeout), self.probe_timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.warning(f"Probe timeout for {backend_url} after {self.probe_timeout}s")
            return HealthCheckResult(
                backend_url=backend_url, outcome=ProbeOutcome.FAIL, detail="timeout"
            )
        except httpx.RequestError as e:
            logger.warning(f"Probe error for {backend_url}: {e!r}")
            return HealthCheckResult(
                backend_url=backend_url, outcome=ProbeOutcome.FAIL, detail=repr(e)
            )
        finally:
            if client is not self.client:
                await client.aclose()

        if resp.is_success:
            logger.debug(f"Probe success for {backend_url}: status={resp.status_code}")
            return HealthCheckResult(
                backend_url=backend_url,
                outcome=ProbeOutcome.PASS,
                status_code=resp.status_code,
            )
        logger.warning(f"Probe failed for {backend_url}: status={resp.status_code}")
        return HealthCheckResult(
            backend_url=backend_url,
            outcome=ProbeOutcome.FAIL,
            status_code=resp.status_code,
            detail=f"status {resp.status_code}",
        )

    async def check(self, backend_url: str) -> Optional[HealthState]:
        """
        Probe ``backend_url`` once and apply the outcome to the registry.

        Returns:
            Optional[HealthState]: The backend's state afterwards, or None if it is no longer registered.
        """
        result = await self.probe(backend_url)
        state = await self.registry.record_probe_result(result, self.policy)
        if self.metrics is not None:
            self.metrics.record_probe(backend_url, result.outcome.value)
            self.metrics.set_healthy(len(await self.registry.healthy_backends()))
        return state

    async def _probe_loop(self, backend_url: str):
        while self._running:
            try:
                state = await self.check(backend_url)
            except Exception as e:
                logger.error(f"Unexpected error probing {backend_url}: {e!r}")
            else:
                if state is None:
                    logger.info(f"Backend {backend_url} no longer registered; stopping probes")
                    if self._tasks.get(backend_url) is asyncio.current_task():
                        del self._tasks[backend_url]
                    return
            await asyncio.sleep(self.probe_interval)
