from datetime import date, time

import pytest

from backend.app.scheduling.models import (
    CancellationPolicy,
    OperatingHours,
    Restaurant,
    SpecialPeriod,
    Table,
    TurnTimeRule,
)


@pytest.fixture
def make_restaurant():
    """Build a restaurant snapshot open every day, defaulting to the 17:00-22:00 / 90 minute setup."""

    def _make(
        *,
        restaurant_id: str = "resto-1",
        tables: tuple[Table, ...] = (Table(id="t1", capacity_min=2, capacity_max=4, name="T1"),),
        hours: tuple[tuple[time, time], ...] = ((time(17, 0), time(22, 0)),),
        days: tuple[int, ...] = tuple(range(7)),
        rules: tuple[TurnTimeRule, ...] = (TurnTimeRule(1, 20, 90),),
        policy: CancellationPolicy | None = None,
        special_periods: tuple[SpecialPeriod, ...] = (),
        timezone: str = "UTC",
    ) -> Restaurant:
        return Restaurant(
            id=restaurant_id,
            name="Demo Bistro",
            timezone=timezone,
            phone="+1-555-0100",
            tables=tables,
            operating_hours=tuple(
                OperatingHours(day_of_week=day, open_time=open_time, close_time=close_time)
                for day in days
                for open_time, close_time in hours
            ),
            turn_time_rules=rules,
            special_periods=special_periods,
            cancellation_policy=policy,
        )

    return _make


@pytest.fixture
def booking_day() -> date:
    # A Wednesday
    return date(2030, 1, 2)
