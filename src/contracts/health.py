import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class HealthState(str, Enum):
    """
    Health of a backend instance as seen by the routing layer.
    """

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class ProbeOutcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class HealthCheckResult(BaseModel):
    """
    Outcome of a single health probe against one backend instance.

    The backend is referenced by URL only; the registry owns the instance.
    """

    backend_url: str
    outcome: ProbeOutcome
    timestamp: float = Field(default_factory=time.time)
    status_code: Optional[int] = None
    detail: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome == ProbeOutcome.PASS
