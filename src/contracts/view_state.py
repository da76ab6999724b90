from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ViewStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class ViewState(BaseModel):
    """
    What the frontend page shows. Success and error are terminal.
    """

    status: ViewStatus = ViewStatus.LOADING
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.status != ViewStatus.LOADING

    @classmethod
    def loading(cls) -> "ViewState":
        return cls()

    @classmethod
    def success(cls, message: str) -> "ViewState":
        return cls(status=ViewStatus.SUCCESS, message=message)

    @classmethod
    def failure(cls, reason: str) -> "ViewState":
        return cls(status=ViewStatus.ERROR, error=reason)
