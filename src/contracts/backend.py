from typing import Optional

from pydantic import BaseModel

from contracts.health import HealthState


class BackendInstance(BaseModel):
    """
    Data model representing a backend service instance tracked by the routing layer.
    """

    url: str
    port: Optional[int] = None
    state: HealthState = HealthState.UNKNOWN
    consecutive_successes: int = 0
    consecutive_failures: int = 0
    active_connections: int = 0
    last_probe_at: Optional[float] = None

    @property
    def is_eligible(self) -> bool:
        """
        Only healthy instances may receive traffic.
        """
        return self.state == HealthState.HEALTHY

    def __eq__(self, other):
        """
        Check equality with another BackendInstance based on URL and port.
        """
        if not isinstance(other, BackendInstance):
            return False
        return self.url == other.url and self.port == other.port

    def __hash__(self):
        """
        Compute hash based on URL and port.
        """
        return hash((self.url, self.port))

    def __repr__(self):
        return (
            f"BackendInstance(url={self.url}, port={self.port}, state={self.state.value}, "
            f"successes={self.consecutive_successes}, failures={self.consecutive_failures})"
        )


class RegistrationRequest(BaseModel):
    url: str
    port: Optional[int] = None


class RegistrationResponse(BaseModel):
    status: str
    backend: BackendInstance
