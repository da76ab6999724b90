import logging
from dataclasses import dataclass

from contracts.backend import BackendInstance
from contracts.health import HealthState, ProbeOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthPolicy:
    """
    Hysteresis rules for turning a stream of probe outcomes into a health state.

    * HEALTHY -> UNHEALTHY after ``unhealthy_threshold`` consecutive failures.
    * UNHEALTHY -> HEALTHY after ``healthy_threshold`` consecutive passes.
    * UNKNOWN -> HEALTHY on the first pass, UNKNOWN -> UNHEALTHY after
      ``unhealthy_threshold`` consecutive failures.
    """

    unhealthy_threshold: int = 3
    healthy_threshold: int = 2

    def __post_init__(self):
        if self.unhealthy_threshold < 1:
            raise ValueError(f"unhealthy_threshold must be >= 1, got {self.unhealthy_threshold}")
        if self.healthy_threshold < 1:
            raise ValueError(f"healthy_threshold must be >= 1, got {self.healthy_threshold}")

    def apply(self, backend: BackendInstance, outcome: ProbeOutcome) -> HealthState:
        """
        Update ``backend`` counters and state in place for one probe outcome.

        Returns:
            HealthState: The state after the update.
        """
        if outcome == ProbeOutcome.PASS:
            backend.consecutive_successes += 1
            backend.consecutive_failures = 0
            if backend.state == HealthState.UNKNOWN:
                backend.state = HealthState.HEALTHY
            elif (
                backend.state == HealthState.UNHEALTHY
                and backend.consecutive_successes >= self.healthy_threshold
            ):
                backend.state = HealthState.HEALTHY
        else:
            backend.consecutive_failures += 1
            backend.consecutive_successes = 0
            if (
                backend.state != HealthState.UNHEALTHY
                and backend.consecutive_failures >= self.unhealthy_threshold
            ):
                backend.state = HealthState.UNHEALTHY
        return backend.state
