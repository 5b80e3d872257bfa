import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from invoice_notifier.api.v1.admin import router as admin_router
from invoice_notifier.api.v1.jobs import router as jobs_router
from invoice_notifier.api.v1.metrics import router as metrics_router
from invoice_notifier.api.v1.providers import router as providers_router
from invoice_notifier.db.session import AsyncSessionLocal, create_tables, engine as default_engine
from invoice_notifier.providers.registry import ProviderRegistry
from invoice_notifier.scheduler.service import SchedulerService
from invoice_notifier.services.queue import QueueEngine
from invoice_notifier.settings import Settings, settings as default_settings
from invoice_notifier.worker.runner import QueueWorker

logger = logging.getLogger(__name__)


def create_app(
    queue: Optional[QueueEngine] = None,
    registry: Optional[ProviderRegistry] = None,
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
) -> FastAPI:
    """Build the HTTP app around a queue and a provider registry.

    The lifespan creates the tables, then runs the queue worker and the lease
    reaper in the background until shutdown.
    """
    settings = settings or default_settings
    queue = queue or QueueEngine(AsyncSessionLocal, name=settings.QUEUE_NAME)
    registry = registry or ProviderRegistry(settings)
    engine = engine or default_engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await create_tables(engine)

        worker = QueueWorker(
            queue,
            registry,
            worker_id=settings.WORKER_ID,
            poll_interval=settings.WORKER_POLL_INTERVAL_SECONDS,
            lease_duration=settings.DEFAULT_LEASE_TIMEOUT_SECONDS,
            heartbeat_interval=settings.HEARTBEAT_INTERVAL_SECONDS,
        )
        scheduler = SchedulerService(
            queue,
            interval=settings.REAPER_INTERVAL_SECONDS,
            max_deliveries=settings.MAX_DELIVERIES,
        )
        await worker.start()
        await scheduler.start()
        logger.info("%s started; supported providers: %s", settings.PROJECT_NAME, sorted(registry.supported_providers()))

        yield

        await scheduler.stop()
        await worker.stop()
        await registry.aclose()

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.state.queue = queue
    app.state.registry = registry
    app.state.settings = settings

    app.include_router(jobs_router, prefix="/api/v1/jobs", tags=["jobs"])
    app.include_router(providers_router, prefix="/api/v1/providers", tags=["providers"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(metrics_router, tags=["metrics"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
