import logging

from config.logging_config import setup_logging

# Set up logging at the start of the module
setup_logging()
logger = logging.getLogger(__name__)

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.config import Config
from contracts.message import Message
from core.metrics_manager import MetricsManager


def create_app(
    message: str = Config.BACKEND_MESSAGE,
    backend_id: str = Config.BACKEND_URL,
    metrics_manager: MetricsManager | None = None,
) -> FastAPI:
    """
    Build a backend instance app. The greeting is fixed for the lifetime of the app.
    """
    greeting = Message(message=message)
    metrics_manager = metrics_manager or MetricsManager()

    @asynccontextmanager
    async def lifespan(app):
        app.state.draining = False
        yield
        app.state.draining = True
        logger.info(f"Backend {backend_id} draining")

    app = FastAPI(lifespan=lifespan, default_response_class=ORJSONResponse)
    app.state.draining = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.cors_origins(),
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.middleware("http")(metrics_manager.prometheus_middleware)
    app.state.metrics_manager = metrics_manager

    @app.get("/api/message", response_model=Message)
    async def read_message(response: Response):
        response.headers["X-Backend-Id"] = backend_id
        return greeting

    @app.get("/health")
    async def health(response: Response):
        if app.state.draining:
            return ORJSONResponse(
                {"status": "draining"}, status_code=503, headers={"X-Backend-Id": backend_id}
            )
        response.headers["X-Backend-Id"] = backend_id
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        content, media_type = metrics_manager.render()
        return Response(content, media_type=media_type)

    logger.info(f"Backend app created for {backend_id}")
    return app


app = create_app()


def run():
    """
    Serve the backend on BACKEND_PORT. uvicorn exits the process if the port cannot be bound.
    """
    uvicorn.run(app, host="0.0.0.0", port=int(Config.BACKEND_PORT), log_config=None)


if __name__ == "__main__":
    run()
