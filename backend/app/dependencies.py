from fastapi import Depends, HTTPException, status

from backend.app.core import booking_lock as lock_module
from backend.app.core.booking_lock import BookingLock, LocalBookingLock, RedisBookingLock
from backend.app.core.config import settings
from backend.app.db.session import SessionLocal
from backend.app.services.availability import AvailabilityService
from backend.app.services.reservations import ReservationService
from backend.app.services.sql_store import SqlReservationStore
from backend.app.services.store import InMemoryReservationStore, ReservationStore

memory_store = InMemoryReservationStore()
local_lock = LocalBookingLock(wait_seconds=settings.BOOKING_LOCK_WAIT_SECONDS)


def get_store() -> ReservationStore:
    if settings.RESERVATION_STORE == "memory":
        return memory_store
    return SqlReservationStore(SessionLocal)


def get_booking_lock() -> BookingLock:
    if settings.BOOKING_LOCK_BACKEND == "local":
        return local_lock
    if lock_module.redis_client is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Redis unavailable")
    return RedisBookingLock(
        lock_module.redis_client,
        ttl_ms=settings.BOOKING_LOCK_TTL_MS,
        wait_seconds=settings.BOOKING_LOCK_WAIT_SECONDS,
    )


def get_availability_service(store: ReservationStore = Depends(get_store)) -> AvailabilityService:
    return AvailabilityService(
        store,
        limits=settings.scheduling_limits,
        timeout_seconds=settings.AVAILABILITY_TIMEOUT_SECONDS,
    )


def get_reservation_service(store: ReservationStore = Depends(get_store)) -> ReservationService:
    """Service for reads and status changes; no booking lock needed."""
    return ReservationService(store, limits=settings.scheduling_limits)


def get_booking_service(
    store: ReservationStore = Depends(get_store),
    lock: BookingLock = Depends(get_booking_lock),
) -> ReservationService:
    return ReservationService(store, lock, limits=settings.scheduling_limits)
