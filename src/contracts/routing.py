import time

from pydantic import BaseModel, Field


class RoutingDecision(BaseModel):
    """
    The backend chosen for one inbound request. Never reused across requests.
    """

    backend_url: str
    policy: str
    decided_at: float = Field(default_factory=time.time)
