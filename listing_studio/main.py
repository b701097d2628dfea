"""Main FastAPI application entry point."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import health, workflows
from .core import (
    ComplianceValidator,
    CreditLedger,
    EditPlanner,
    TaskScheduler,
    WorkflowController,
)
from .providers import GeminiClient
from .utils.cache import Cache
from .utils.config import Config, load_config
from .utils.logger import get_logger
from .utils.storage import AssetStore, JsonFileStore, MemoryStore

logger = get_logger(__name__)


async def build_services(app: FastAPI, config: Config, service=None):
    """
    Construct every service once and store it on ``app.state``.

    Args:
        app: Application whose state receives the services
        config: Loaded configuration
        service: Generative capability; a GeminiClient is created if omitted
    """
    store = JsonFileStore(config.storage_path) if config.storage_path else MemoryStore()

    ledger = CreditLedger(
        store=store,
        costs=config.credits.costs,
        initial_balance=config.credits.initial_balance,
    )

    if service is None:
        service = GeminiClient(
            api_key=config.gemini_api_key,
            timeout=config.timeout_gemini_seconds,
            editing_model=config.models.editing,
            vision_model=config.models.vision,
            video_model=config.models.video,
            poll_interval=config.video.poll_interval_seconds,
            max_wait=config.video.max_wait_seconds,
        )
        await service.initialize()

    scheduler = TaskScheduler(
        cache=Cache(ttl_seconds=config.cache.ttl_seconds),
        max_retries=config.retry.max_retries,
        initial_delay=config.retry.initial_delay_seconds,
        backoff_factor=config.retry.backoff_factor,
    )

    planner = EditPlanner(
        ledger=ledger,
        validator=ComplianceValidator(),
        model_selector=config.models.editing,
    )

    app.state.config = config
    app.state.store = store
    app.state.assets = AssetStore(store)
    app.state.ledger = ledger
    app.state.service = service
    app.state.scheduler = scheduler
    app.state.planner = planner
    app.state.controller = WorkflowController(service, planner, scheduler, ledger)
    app.state.asset_locks = workflows.AssetLocks()

    logger.info(
        "Services initialized",
        extra={
            "storage": str(config.storage_path) if config.storage_path else "memory",
            "balance": ledger.balance(),
            "editing_model": config.models.editing,
        }
    )


async def shutdown_services(app: FastAPI):
    await app.state.scheduler.close()
    if isinstance(app.state.service, GeminiClient):
        await app.state.service.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown.

    Builds all services on startup, stops the scheduler and closes the
    provider client on shutdown.
    """
    logger.info("Application starting up...")

    try:
        config = load_config()
        logger.info("Configuration loaded successfully")
        await build_services(app, config)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Application shutting down...")
    await shutdown_services(app)
    logger.info("Application shutdown complete")


def create_app(lifespan_handler=lifespan) -> FastAPI:
    app = FastAPI(
        title="Listing Studio",
        description="MLS-compliant AI photo editing for real-estate listings",
        version=__version__,
        lifespan=lifespan_handler,
    )

    # Add CORS middleware (adjust origins for production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(workflows.router, tags=["workflows"])
    workflows.register_error_handlers(app)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "listing-studio",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))

    uvicorn.run(
        "listing_studio.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info",
    )
