"""
Shared FastAPI app factory for the production and test applications

Both apps get the same routers, error envelope, CORS policy, request tracing
and the /health and /metrics endpoints; they differ only in their lifespan
(the production one runs the expiry sweeper).
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from fastapi import APIRouter, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.platform.config.core_setting import settings
from src.platform.database.orm_db_setting import get_engine
from src.platform.exception.exception_handlers import register_exception_handlers
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig
from src.service.ticket_lifecycle.driving_adapter.http_controller import (
    audit_controller,
    cart_controller,
    checkout_controller,
    order_controller,
    payment_controller,
    refund_controller,
    ticket_controller,
    transfer_controller,
)


# (router, prefix, tag)
API_ROUTES: list[tuple[APIRouter, str, str]] = [
    (cart_controller.router, '/api/cart', 'cart'),
    (checkout_controller.router, '/api/checkout', 'checkout'),
    (order_controller.router, '/api/orders', 'order'),
    (payment_controller.router, '/api/payments', 'payment'),
    (ticket_controller.router, '/api/tickets', 'ticket'),
    (transfer_controller.router, '/api/transfers', 'transfer'),
    (refund_controller.router, '/api/refunds', 'refund'),
    (audit_controller.router, '/api/audit', 'audit'),
]


def create_app(
    *,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[Any]],
    title_suffix: str = '',
    description: str = 'Checkout & Ticket Lifecycle Engine',
    service_name: str = 'ticket-lifecycle',
) -> FastAPI:
    app = FastAPI(
        title=f'{settings.PROJECT_NAME}{title_suffix}',
        description=description,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # Must run before the routes are mounted
    TracingConfig(service_name=service_name).instrument_fastapi(app=app)

    app.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    for router, prefix, tag in API_ROUTES:
        app.include_router(router, prefix=prefix, tags=[tag])

    _register_common_endpoints(app)
    return app


async def _database_reachable() -> bool:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text('SELECT 1'))
    except (SQLAlchemyError, OSError) as e:
        Logger.base.warning(f'🩺 [HEALTH] Database unreachable: {type(e).__name__}: {e}')
        return False
    return True


def _register_common_endpoints(app: FastAPI) -> None:
    @app.get('/health')
    async def health_check() -> JSONResponse:
        """Liveness plus a database round trip; 503 takes the replica out of rotation."""
        database_ok = await _database_reachable()
        return JSONResponse(
            status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                'status': 'healthy' if database_ok else 'degraded',
                'service': settings.PROJECT_NAME,
                'database': 'ok' if database_ok else 'unavailable',
            },
        )

    @app.get('/metrics')
    async def get_metrics() -> PlainTextResponse:
        """Prometheus scrape endpoint."""
        return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
