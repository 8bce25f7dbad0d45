"""Main application entry point."""

from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from src.api.error_handlers import fetch_exception_handler, validation_exception_handler
from src.api.routes import router
from src.services.errors import FetchError
from src.services.pipeline import PricePipeline
from src.utils.config import config
from src.utils.logger import StructuredLogger

logger = StructuredLogger("main")


def create_app(pipeline_factory: Callable[[], PricePipeline] = PricePipeline) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        pipeline_factory: Builds the pipeline at startup (overridable in tests)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        # Startup
        try:
            config.validate()
        except ValueError as e:
            logger.critical("Configuration error", exception=e)
            raise

        pipeline = pipeline_factory()
        app.state.pipeline = pipeline
        if config.poller.autostart:
            pipeline.poller.start(config.poller.interval_seconds)
        yield
        # Shutdown
        pipeline.shutdown()
        app.state.pipeline = None

    app = FastAPI(
        title="Coin Pulse",
        description="Crypto price polling, alerting, charts and portfolio valuation",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(FetchError, fetch_exception_handler)

    app.include_router(router, prefix="/api", tags=["prices"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
