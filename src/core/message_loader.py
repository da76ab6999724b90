import logging
from typing import Optional

import httpx

from contracts.message import Message
from contracts.view_state import ViewState, ViewStatus

logger = logging.getLogger(__name__)


class MessageLoader:
    """
    Fetches the greeting once for a page load.

    The view starts in LOADING and settles on the first response as SUCCESS or
    ERROR. There is no retry and no polling; the request timeout guarantees the
    view always settles.
    """

    def __init__(
        self,
        api_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        message_path: str = "/api/message",
    ):
        self.api_url = api_url.rstrip("/")
        self.client = client
        self.timeout = timeout
        self.message_path = message_path
        self.state = ViewState.loading()

    async def load(self) -> ViewState:
        """
        Issue the request and settle the view. Calling again returns the settled state.
        """
        if self.state.settled:
            return self.state
        url = f"{self.api_url}{self.message_path}"
        client = self.client or httpx.AsyncClient()
        try:
            resp = await client.get(url, timeout=self.timeout)
        except httpx.TimeoutException:
            self.state = ViewState.failure("Failed to fetch from backend (timed out)")
        except httpx.RequestError as e:
            self.state = ViewState.failure(f"Failed to fetch from backend ({e.__class__.__name__})")
        else:
            self.state = self._settle(resp)
        finally:
            if client is not self.client:
                await client.aclose()

        if self.state.status == ViewStatus.ERROR:
            logger.warning(f"Message load from {url} failed: {self.state.error}")
        else:
            logger.info(f"Message loaded from {url}")
        return self.state

    @staticmethod
    def _settle(resp: httpx.Response) -> ViewState:
        if not resp.is_success:
            return ViewState.failure(f"Failed to fetch from backend (status {resp.status_code})")
        try:
            payload = Message.model_validate(resp.json())
        except ValueError:
            # covers malformed JSON and pydantic ValidationError
            return ViewState.failure("Unexpected response from backend")
        return ViewState.success(payload.message)
