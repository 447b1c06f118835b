"""
FastAPI application used by the API tests

Same routers and error envelope as production; the lifespan creates the schema
on the test database and never starts the expiry sweeper.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.platform.app_factory import create_app
from src.platform.config.di import container, setup
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.database.orm_db_setting import create_db_and_tables, dispose_engine
from src.platform.logging.loguru_io import Logger


@asynccontextmanager
async def lifespan_for_tests(app: FastAPI) -> AsyncIterator[None]:
    await create_db_and_tables()
    container.wire(modules=WIRE_MODULES)
    setup()
    Logger.base.info('🧪 [Test App] Schema created, container wired, sweeper off')

    yield

    await dispose_engine()
    container.unwire()
    Logger.base.info('🧪 [Test App] Engine disposed')


app = create_app(
    lifespan=lifespan_for_tests,
    title_suffix=' (Test)',
    description='Ticket lifecycle API without background sweeps',
    service_name='test-ticket-lifecycle',
)
