import html
import logging

from config.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, ORJSONResponse

from config.config import Config
from contracts.view_state import ViewState, ViewStatus
from core.message_loader import MessageLoader

PAGE_TITLE = "AWS Full Stack App with Load Balancer"


def render_page(state: ViewState) -> str:
    if state.status == ViewStatus.LOADING:
        body = "<p>Loading...</p>"
    elif state.status == ViewStatus.ERROR:
        body = f'<p class="error">Error: {html.escape(state.error or "")}</p>'
    else:
        body = (
            '<div class="message-container">\n'
            "      <h2>Message from Backend:</h2>\n"
            f'      <p class="backend-message">{html.escape(state.message or "")}</p>\n'
            "    </div>"
        )
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        f"<head><meta charset=\"utf-8\"><title>{PAGE_TITLE}</title></head>\n"
        "<body>\n"
        '  <header class="App-header">\n'
        f"    <h1>{PAGE_TITLE}</h1>\n"
        f"    {body}\n"
        "  </header>\n"
        "</body>\n"
        "</html>\n"
    )


def create_app(
    api_url: str = Config.FRONTEND_API_URL,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = Config.FRONTEND_TIMEOUT,
) -> FastAPI:
    """
    Build the frontend app. Every page load issues exactly one request to the API.
    """
    owns_client = client is None
    client = client or httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(app):
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(lifespan=lifespan, default_response_class=ORJSONResponse)

    async def load_view() -> ViewState:
        return await MessageLoader(api_url, client=client, timeout=timeout).load()

    @app.get("/", response_class=HTMLResponse)
    async def index():
        state = await load_view()
        return HTMLResponse(render_page(state))

    @app.get("/api/view", response_model=ViewState)
    async def view():
        return await load_view()

    return app


app = create_app()


def run():
    uvicorn.run(app, host="0.0.0.0", port=Config.FRONTEND_PORT, log_config=None)


if __name__ == "__main__":
    run()
