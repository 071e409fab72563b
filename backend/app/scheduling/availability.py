"""Slot availability projection for one restaurant and one local date.

Everything here is a pure function of the restaurant snapshot and the
reservations handed in; nothing is read from or written to storage. Problems
with the restaurant's configuration never raise: the offending window simply
produces no slots and a ``ConfigurationWarning`` is returned next to the
slots so the caller can log it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from backend.app.scheduling.conflicts import first_free_candidate
from backend.app.scheduling.interval import Interval
from backend.app.scheduling.matcher import candidate_tables
from backend.app.scheduling.models import (
    ConfigurationWarning,
    Reservation,
    Restaurant,
    SchedulingLimits,
    Slot,
    SpecialPeriod,
)

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    slots: list[Slot] = field(default_factory=list)
    warnings: list[ConfigurationWarning] = field(default_factory=list)

    @property
    def has_availability(self) -> bool:
        return any(slot.available for slot in self.slots)


def restaurant_zone(restaurant: Restaurant) -> ZoneInfo:
    try:
        return ZoneInfo(restaurant.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Unknown timezone %r for restaurant %s, using UTC",
            restaurant.timezone,
            restaurant.id,
        )
        return ZoneInfo("UTC")


def day_of_week(day: date) -> int:
    """Day index with Sunday as 0, matching the stored operating hours."""
    return (day.weekday() + 1) % 7


def local_date(restaurant: Restaurant, instant: datetime) -> date:
    return instant.astimezone(restaurant_zone(restaurant)).date()


def covering_periods(restaurant: Restaurant, day: date) -> list[SpecialPeriod]:
    """Special periods in force on ``day``, narrowest date range first."""
    covering = [p for p in restaurant.special_periods if p.covers(day)]
    return sorted(covering, key=lambda p: p.end_date - p.start_date)


def is_blacked_out(restaurant: Restaurant, day: date) -> bool:
    return any(p.is_blackout for p in covering_periods(restaurant, day))


def resolve_turn_time(
    restaurant: Restaurant,
    party_size: int,
    day: date,
    limits: SchedulingLimits,
) -> int:
    for period in covering_periods(restaurant, day):
        if not period.is_blackout and period.turn_time_minutes is not None:
            return period.turn_time_minutes

    rules = sorted(restaurant.turn_time_rules, key=lambda r: (r.party_size_min, r.party_size_max))
    for rule in rules:
        if rule.matches(party_size):
            return rule.turn_time_minutes
    return limits.default_turn_time_minutes


def service_windows(restaurant: Restaurant, day: date) -> list[tuple[time, time]]:
    """Opening windows for ``day``.

    A blackout anywhere on the date wins over every other period. Otherwise the
    narrowest special period with its own hours replaces the weekly hours.
    """
    if is_blacked_out(restaurant, day):
        return []
    for period in covering_periods(restaurant, day):
        if period.open_time is not None and period.close_time is not None:
            return [(period.open_time, period.close_time)]

    dow = day_of_week(day)
    hours = sorted(
        (h for h in restaurant.operating_hours if h.day_of_week == dow),
        key=lambda h: (h.open_time, h.close_time),
    )
    return [(h.open_time, h.close_time) for h in hours]


def local_day_bounds(restaurant: Restaurant, day: date) -> tuple[datetime, datetime]:
    """UTC instants of local midnight at the start and end of ``day``."""
    zone = restaurant_zone(restaurant)
    day_start = datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)
    day_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone).astimezone(timezone.utc)
    return day_start, day_end


def reservation_window(
    restaurant: Restaurant,
    day: date,
    limits: SchedulingLimits,
) -> tuple[datetime, datetime]:
    """UTC range of reservation start times that can collide with ``day``'s slots."""
    day_start, day_end = local_day_bounds(restaurant, day)
    return day_start - timedelta(minutes=limits.max_turn_time_minutes), day_end


def turn_time_warning(restaurant: Restaurant, turn_time: int, limits: SchedulingLimits) -> ConfigurationWarning | None:
    if 0 < turn_time <= limits.max_turn_time_minutes:
        return None
    return ConfigurationWarning(
        restaurant_id=restaurant.id,
        code="invalid_turn_time",
        message=f"Turn time {turn_time}min is outside 1-{limits.max_turn_time_minutes}min",
        details={"turn_time": turn_time},
    )


def calculate_availability(
    restaurant: Restaurant,
    day: date,
    party_size: int,
    reservations: Sequence[Reservation],
    limits: SchedulingLimits | None = None,
) -> AvailabilityResult:
    limits = limits or SchedulingLimits()
    result = AvailabilityResult()

    windows = service_windows(restaurant, day)
    if not windows:
        return result

    turn_time = resolve_turn_time(restaurant, party_size, day, limits)
    warning = turn_time_warning(restaurant, turn_time, limits)
    if warning is not None:
        result.warnings.append(warning)
        return result

    zone = restaurant_zone(restaurant)
    candidates = candidate_tables(party_size, restaurant.tables)
    step = timedelta(minutes=limits.slot_interval_minutes)
    turn = timedelta(minutes=turn_time)
    generated = 0

    for open_time, close_time in windows:
        opens_at = datetime.combine(day, open_time, tzinfo=zone)
        closes_at = datetime.combine(day, close_time, tzinfo=zone)
        last_start = closes_at - turn
        details = {
            "date": day.isoformat(),
            "open_time": open_time.strftime("%H:%M"),
            "close_time": close_time.strftime("%H:%M"),
            "turn_time": turn_time,
        }

        if opens_at > closes_at:
            result.warnings.append(
                ConfigurationWarning(restaurant.id, "open_after_close", "Opening time is after closing time", details)
            )
            continue
        if opens_at > last_start:
            result.warnings.append(
                ConfigurationWarning(
                    restaurant.id,
                    "turn_time_exceeds_hours",
                    f"Turn time {turn_time}min is too long for the operating hours",
                    details,
                )
            )
            continue

        cursor = opens_at
        while cursor <= last_start:
            if generated >= limits.max_slots_per_day:
                result.warnings.append(
                    ConfigurationWarning(
                        restaurant.id,
                        "slot_cap_reached",
                        f"Stopped after {limits.max_slots_per_day} slots",
                        details,
                    )
                )
                return result

            proposed = Interval(cursor.astimezone(timezone.utc), (cursor + turn).astimezone(timezone.utc))
            chosen = first_free_candidate(candidates, proposed, reservations)
            result.slots.append(
                Slot(
                    time=cursor.strftime("%H:%M"),
                    available=chosen is not None,
                    table_id=chosen[0].id if chosen is not None else None,
                )
            )
            cursor += step
            generated += 1

    return result
