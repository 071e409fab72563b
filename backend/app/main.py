import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from backend.app.core.booking_lock import close_redis, init_redis
from backend.app.core.config import settings
from backend.app.core.errors import SchedulingError, scheduling_error_response
from backend.app.core.logging import configure_logging
from backend.app.dependencies import memory_store
from backend.app.services.seed import seed_store
import backend.app.routers.availability as availability
import backend.app.routers.health as health
import backend.app.routers.reservations as reservations
import backend.app.routers.tables as tables

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    if settings.RESERVATION_STORE == "memory":
        if settings.MEMORY_STORE_SEED_FILE:
            seed_store(memory_store, settings.MEMORY_STORE_SEED_FILE)
        else:
            logger.warning("In-memory store started without MEMORY_STORE_SEED_FILE; it has no restaurants")
    if settings.BOOKING_LOCK_BACKEND == "redis":
        await init_redis()
    try:
        yield
    finally:
        await close_redis()


app = FastAPI(
    title="Table Scheduler API",
    lifespan=lifespan,
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    return scheduling_error_response(exc)


app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(availability.router, prefix=settings.API_PREFIX)
app.include_router(reservations.router, prefix=settings.API_PREFIX)
app.include_router(tables.router, prefix=settings.API_PREFIX)
