from __future__ import annotations

import asyncio
import logging
from datetime import date

from backend.app.scheduling.availability import AvailabilityResult, calculate_availability, reservation_window
from backend.app.scheduling.models import SchedulingLimits
from backend.app.services.store import ReservationUnit

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Read-only slot projection; results are advisory and may lose a race to a booking."""

    def __init__(
        self,
        store: ReservationUnit,
        *,
        limits: SchedulingLimits | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._store = store
        self._limits = limits or SchedulingLimits()
        self._timeout_seconds = timeout_seconds

    async def _calculate(self, restaurant_id: str, day: date, party_size: int) -> AvailabilityResult:
        restaurant = await self._store.load_restaurant(restaurant_id)
        if restaurant is None:
            return AvailabilityResult()

        starts_from, starts_before = reservation_window(restaurant, day, self._limits)
        reservations = await self._store.active_reservations(restaurant.id, starts_from, starts_before)
        return calculate_availability(restaurant, day, party_size, reservations, self._limits)

    async def get_availability(self, restaurant_id: str, day: date, party_size: int) -> AvailabilityResult:
        try:
            result = await asyncio.wait_for(
                self._calculate(restaurant_id, day, party_size),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Availability calculation timed out",
                extra={"restaurant_id": restaurant_id, "date": day.isoformat(), "party_size": party_size},
            )
            return AvailabilityResult()

        for warning in result.warnings:
            logger.warning(
                "Configuration warning for restaurant %s: %s",
                warning.restaurant_id,
                warning.message,
                extra={"code": warning.code, **warning.details},
            )
        return result
