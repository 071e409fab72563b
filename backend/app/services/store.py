"""Persistence contract for the scheduler, plus an in-process implementation.

The scheduler never reaches into ambient state: every read of reservations is
an explicit call scoped to one restaurant and a window of start times, and
the booking path runs its read and its write inside ``transaction()``.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from backend.app.scheduling.models import Reservation, ReservationStatus, Restaurant


class ReservationUnit(Protocol):
    """Operations available to a caller, inside or outside a transaction."""

    async def load_restaurant(self, restaurant_id: str) -> Restaurant | None: ...

    async def active_reservations(
        self,
        restaurant_id: str,
        starts_from: datetime,
        starts_before: datetime,
    ) -> list[Reservation]: ...

    async def get_reservation(self, reservation_id: str) -> Reservation | None: ...

    async def list_reservations(
        self,
        *,
        restaurant_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]: ...

    async def insert_reservation(self, reservation: Reservation) -> Reservation: ...

    async def update_status(
        self,
        reservation_id: str,
        *,
        expected: Iterable[ReservationStatus],
        status: ReservationStatus,
        now: datetime,
    ) -> Reservation | None:
        """Move the row to ``status`` only if it is still in ``expected``; None otherwise."""
        ...


class ReservationStore(ReservationUnit, Protocol):
    def transaction(self, lock_keys: Sequence[str]) -> AbstractAsyncContextManager[ReservationUnit]: ...


class InMemoryReservationStore:
    """Dict-backed store for a single process; callers serialise writes with a booking lock."""

    def __init__(self, restaurants: Iterable[Restaurant] = ()) -> None:
        self._restaurants: dict[str, Restaurant] = {r.id: r for r in restaurants}
        self._reservations: dict[str, Reservation] = {}

    def add_restaurant(self, restaurant: Restaurant) -> None:
        self._restaurants[restaurant.id] = restaurant

    async def load_restaurant(self, restaurant_id: str) -> Restaurant | None:
        await asyncio.sleep(0)  # yield like a driver round trip
        return self._restaurants.get(restaurant_id)

    async def active_reservations(
        self,
        restaurant_id: str,
        starts_from: datetime,
        starts_before: datetime,
    ) -> list[Reservation]:
        await asyncio.sleep(0)
        return [
            r
            for r in self._reservations.values()
            if r.restaurant_id == restaurant_id
            and r.is_active
            and starts_from <= r.reservation_time < starts_before
        ]

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        return self._reservations.get(reservation_id)

    async def list_reservations(
        self,
        *,
        restaurant_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]:
        rows = [
            r
            for r in self._reservations.values()
            if (restaurant_id is None or r.restaurant_id == restaurant_id)
            and (user_id is None or r.user_id == user_id)
        ]
        return sorted(rows, key=lambda r: r.reservation_time, reverse=True)

    async def insert_reservation(self, reservation: Reservation) -> Reservation:
        if reservation.id in self._reservations:
            raise ValueError(f"Reservation {reservation.id} already exists")
        self._reservations[reservation.id] = reservation
        return reservation

    async def update_status(
        self,
        reservation_id: str,
        *,
        expected: Iterable[ReservationStatus],
        status: ReservationStatus,
        now: datetime,
    ) -> Reservation | None:
        current = self._reservations.get(reservation_id)
        if current is None or current.status not in set(expected):
            return None
        updated = replace(current, status=status, updated_at=now)
        self._reservations[reservation_id] = updated
        return updated

    @asynccontextmanager
    async def transaction(self, lock_keys: Sequence[str]) -> AsyncIterator[InMemoryReservationStore]:
        yield self
