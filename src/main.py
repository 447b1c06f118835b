"""
Production FastAPI Application

Checkout & ticket lifecycle API with the background expiry sweeper.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import cleanup, container, setup
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.database.orm_db_setting import dispose_engine, get_engine
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig
from src.service.ticket_lifecycle.driving_adapter.background.lifecycle_sweeper import (
    LifecycleSweeper,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown."""
    Logger.base.info('🚀 [Lifecycle Service] Starting up...')

    tracing = TracingConfig(service_name='ticket-lifecycle')
    tracing.setup()
    Logger.base.info('📊 [Lifecycle Service] OpenTelemetry tracing configured')

    container.wire(modules=WIRE_MODULES)
    setup()
    Logger.base.info('🔌 [Lifecycle Service] Dependency injection wired')

    engine = get_engine()
    tracing.instrument_sqlalchemy(engine=engine)
    Logger.base.info('🗄️  [Lifecycle Service] Database engine ready + instrumented')

    async with anyio.create_task_group() as tg:
        if settings.SWEEPER_ENABLED:
            sweeper = LifecycleSweeper.from_container(container)
            await sweeper.start(task_group=tg)
        else:
            Logger.base.info('⏸️  [Lifecycle Service] Sweeper disabled')

        Logger.base.info('✅ [Lifecycle Service] Ready to serve requests')

        yield

        Logger.base.info('🛑 [Lifecycle Service] Shutting down...')
        tg.cancel_scope.cancel()

    await dispose_engine()
    Logger.base.info('🗄️  [Lifecycle Service] Database engine disposed')

    # Flush remaining spans
    tracing.shutdown()
    Logger.base.info('📊 [Lifecycle Service] Tracing shutdown complete')

    cleanup()
    container.unwire()

    Logger.base.info('👋 [Lifecycle Service] Shutdown complete')


app = create_app(
    lifespan=lifespan,
    description=(
        'Checkout & Ticket Lifecycle Engine - carts, reservations, payments, '
        'ticket issuance, validation, transfers and refunds'
    ),
)


@app.get('/')
async def root() -> RedirectResponse:
    """Root endpoint - redirect to docs."""
    return RedirectResponse(url='/docs')
