from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from backend.app.core.booking_lock import BookingLock, booking_key
from backend.app.core.errors import (
    InvalidPartySize,
    InvalidTransition,
    NoAvailability,
    OnlineCancellationDisallowed,
    PastTime,
    ReservationNotFound,
    RestaurantNotFound,
    TooLateToCancel,
)
from backend.app.scheduling.availability import (
    local_date,
    local_day_bounds,
    resolve_turn_time,
    service_windows,
    turn_time_warning,
)
from backend.app.scheduling.conflicts import first_free_candidate
from backend.app.scheduling.interval import Interval
from backend.app.scheduling.lifecycle import ensure_transition, initial_status
from backend.app.scheduling.matcher import candidate_tables
from backend.app.scheduling.models import Reservation, ReservationStatus, Restaurant, SchedulingLimits
from backend.app.scheduling.policy import CancellationOutcome, evaluate_cancellation
from backend.app.scheduling.utilization import TableUtilization, table_usage
from backend.app.services.store import ReservationStore

logger = logging.getLogger(__name__)

NO_TABLE_MESSAGE = "No available tables for the requested time"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _lock_keys(restaurant: Restaurant, interval: Interval) -> list[str]:
    """One key per restaurant-local date the interval touches."""
    first = local_date(restaurant, interval.start)
    last = local_date(restaurant, interval.end - timedelta(microseconds=1))
    keys = []
    day = first
    while day <= last:
        keys.append(booking_key(restaurant.id, day))
        day += timedelta(days=1)
    return keys


class ReservationService:
    def __init__(
        self,
        store: ReservationStore,
        lock: BookingLock | None = None,
        *,
        limits: SchedulingLimits | None = None,
        clock=_utcnow,
    ) -> None:
        self._store = store
        self._lock = lock
        self._limits = limits or SchedulingLimits()
        self._clock = clock

    async def create_reservation(
        self,
        *,
        restaurant_id: str,
        reservation_time: datetime,
        party_size: int,
        user_id: str,
        auto_confirm: bool = False,
        turn_time_override: int | None = None,
        notes: str | None = None,
    ) -> Reservation:
        """Find a table and persist a reservation on it as one atomic step.

        The table search and the insert run under the booking lock for every
        restaurant-local date the stay touches and inside a store transaction,
        so a concurrent booking either commits first and is seen by the
        conflict check here, or waits for this one to commit.
        """
        limits = self._limits
        if not limits.min_party_size <= party_size <= limits.max_party_size:
            raise InvalidPartySize(
                f"Party size must be between {limits.min_party_size} and {limits.max_party_size}",
                party_size=party_size,
            )
        if reservation_time.tzinfo is None or reservation_time.utcoffset() is None:
            raise PastTime("reservation_time must include timezone information")
        start = reservation_time.astimezone(timezone.utc)
        if start < self._clock():
            raise PastTime("Reservation time cannot be in the past", reservation_time=start.isoformat())

        restaurant = await self._store.load_restaurant(restaurant_id)
        if restaurant is None:
            raise RestaurantNotFound("Restaurant not found", restaurant_id=restaurant_id)

        if turn_time_override is not None:
            turn_time = turn_time_override
        else:
            turn_time = resolve_turn_time(restaurant, party_size, local_date(restaurant, start), limits)
        warning = turn_time_warning(restaurant, turn_time, limits)
        if warning is not None:
            logger.warning(
                "Configuration warning for restaurant %s: %s",
                warning.restaurant_id,
                warning.message,
                extra={"code": warning.code, **warning.details},
            )
            raise NoAvailability(NO_TABLE_MESSAGE)

        proposed = Interval.from_duration(start, turn_time)
        candidates = candidate_tables(party_size, restaurant.tables)
        if not candidates:
            logger.info(
                "No table can seat party",
                extra={"restaurant_id": restaurant.id, "party_size": party_size},
            )
            raise NoAvailability(NO_TABLE_MESSAGE, reason="no_table_fits")

        if self._lock is None:
            raise RuntimeError("create_reservation needs a booking lock")
        keys = _lock_keys(restaurant, proposed)
        async with self._lock.hold(keys):
            async with self._store.transaction(keys) as unit:
                existing = await unit.active_reservations(
                    restaurant.id,
                    start - timedelta(minutes=max(limits.max_turn_time_minutes, turn_time)),
                    proposed.end,
                )
                chosen = first_free_candidate(candidates, proposed, existing)
                if chosen is None:
                    raise NoAvailability(NO_TABLE_MESSAGE)

                now = self._clock()
                reservation = await unit.insert_reservation(
                    Reservation(
                        id=str(uuid4()),
                        restaurant_id=restaurant.id,
                        user_id=user_id,
                        table_id=chosen[0].id,
                        joined_table_id=chosen[1].id if len(chosen) > 1 else None,
                        reservation_time=start,
                        party_size=party_size,
                        turn_time_used=turn_time,
                        status=initial_status(auto_confirm),
                        notes=notes,
                        created_at=now,
                        updated_at=now,
                    )
                )

        logger.info(
            "Reservation created",
            extra={
                "reservation_id": reservation.id,
                "restaurant_id": reservation.restaurant_id,
                "table_id": reservation.table_id,
                "status": reservation.status.value,
            },
        )
        return reservation

    async def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = await self._store.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFound("Reservation not found", reservation_id=reservation_id)
        return reservation

    async def list_reservations(
        self,
        *,
        restaurant_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]:
        return await self._store.list_reservations(restaurant_id=restaurant_id, user_id=user_id)

    async def table_utilization(self, restaurant_id: str, day: date) -> TableUtilization:
        """Each table with the active reservations starting on the restaurant-local ``day``."""
        restaurant = await self._store.load_restaurant(restaurant_id)
        if restaurant is None:
            raise RestaurantNotFound("Restaurant not found", restaurant_id=restaurant_id)

        day_start, day_end = local_day_bounds(restaurant, day)
        reservations = await self._store.active_reservations(restaurant.id, day_start, day_end)
        return TableUtilization(
            restaurant=restaurant,
            day=day,
            windows=service_windows(restaurant, day),
            tables=table_usage(restaurant.tables, reservations, day_start, day_end),
        )

    async def _transition(self, reservation_id: str, target: ReservationStatus) -> Reservation:
        for _ in range(2):
            current = await self.get_reservation(reservation_id)
            ensure_transition(reservation_id, current.status, target)
            updated = await self._store.update_status(
                reservation_id,
                expected=(current.status,),
                status=target,
                now=self._clock(),
            )
            if updated is not None:
                logger.info(
                    "Reservation status changed",
                    extra={"reservation_id": reservation_id, "from": current.status.value, "to": target.value},
                )
                return updated
            # Status moved underneath us; re-evaluate against the fresh row.
        raise InvalidTransition(
            "Reservation changed concurrently, retry",
            reservation_id=reservation_id,
            requested_status=target.value,
        )

    async def cancel_reservation(self, reservation_id: str) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        ensure_transition(reservation_id, reservation.status, ReservationStatus.CANCELLED)

        restaurant = await self._store.load_restaurant(reservation.restaurant_id)
        policy = restaurant.cancellation_policy if restaurant is not None else None
        decision = evaluate_cancellation(reservation.reservation_time, policy, self._clock())
        if decision.outcome is CancellationOutcome.DISALLOWED:
            raise OnlineCancellationDisallowed(
                "Online cancellation is not allowed for this restaurant. Please contact the restaurant directly.",
                restaurant_phone=restaurant.phone if restaurant is not None else None,
                cancellation_policy=decision.terms,
            )
        if decision.outcome is CancellationOutcome.TOO_LATE:
            raise TooLateToCancel(
                f"Reservations must be cancelled at least {policy.hours_before_no_fee} hours in advance",
                cancellation_policy=decision.terms,
            )

        return await self._transition(reservation_id, ReservationStatus.CANCELLED)

    async def confirm_reservation(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationStatus.CONFIRMED)

    async def complete_reservation(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationStatus.COMPLETED)

    async def mark_no_show(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationStatus.NO_SHOW)
