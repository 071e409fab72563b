"""Restaurant configuration for the in-memory store, read from a JSON file.

The file holds a list of restaurants in the same shape as the snapshot the
scheduler works on, for example::

    [{"id": "bistro", "name": "Demo Bistro", "timezone": "America/New_York",
      "tables": [{"id": "t1", "capacity_min": 2, "capacity_max": 4}],
      "operating_hours": [{"day_of_week": 3, "open_time": "17:00", "close_time": "22:00"}],
      "turn_time_rules": [{"party_size_min": 1, "party_size_max": 4, "turn_time_minutes": 90}]}]
"""
from __future__ import annotations

import logging
from datetime import date, time
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter

from backend.app.scheduling.models import (
    CancellationPolicy,
    OperatingHours,
    Restaurant,
    SpecialPeriod,
    Table,
    TurnTimeRule,
)
from backend.app.services.store import InMemoryReservationStore

logger = logging.getLogger(__name__)


class TableSeed(BaseModel):
    id: str
    name: str = ""
    capacity_min: int = Field(ge=1)
    capacity_max: int = Field(ge=1)
    is_joinable: bool = False


class OperatingHoursSeed(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    open_time: time
    close_time: time


class TurnTimeRuleSeed(BaseModel):
    party_size_min: int
    party_size_max: int
    turn_time_minutes: int


class SpecialPeriodSeed(BaseModel):
    start_date: date
    end_date: date
    is_blackout: bool = False
    open_time: time | None = None
    close_time: time | None = None
    turn_time_minutes: int | None = None
    name: str = ""


class CancellationPolicySeed(BaseModel):
    hours_before_no_fee: int | None = None
    fee_percentage: float | None = None
    fixed_fee_amount: float | None = None
    allow_online_cancellation: bool = True
    notes: str | None = None


class RestaurantSeed(BaseModel):
    id: str
    name: str = ""
    timezone: str = "UTC"
    phone: str | None = None
    tables: list[TableSeed] = []
    operating_hours: list[OperatingHoursSeed] = []
    turn_time_rules: list[TurnTimeRuleSeed] = []
    special_periods: list[SpecialPeriodSeed] = []
    cancellation_policy: CancellationPolicySeed | None = None

    def to_restaurant(self) -> Restaurant:
        policy = self.cancellation_policy
        return Restaurant(
            id=self.id,
            name=self.name,
            timezone=self.timezone,
            phone=self.phone,
            tables=tuple(Table(**t.model_dump()) for t in self.tables),
            operating_hours=tuple(OperatingHours(**h.model_dump()) for h in self.operating_hours),
            turn_time_rules=tuple(TurnTimeRule(**r.model_dump()) for r in self.turn_time_rules),
            special_periods=tuple(SpecialPeriod(**p.model_dump()) for p in self.special_periods),
            cancellation_policy=CancellationPolicy(**policy.model_dump()) if policy is not None else None,
        )


_restaurants_adapter = TypeAdapter(list[RestaurantSeed])


def load_restaurants(path: str | Path) -> list[Restaurant]:
    seeds = _restaurants_adapter.validate_json(Path(path).read_text())
    return [seed.to_restaurant() for seed in seeds]


def seed_store(store: InMemoryReservationStore, path: str | Path) -> int:
    restaurants = load_restaurants(path)
    for restaurant in restaurants:
        store.add_restaurant(restaurant)
    logger.info("Seeded in-memory store", extra={"path": str(path), "restaurants": len(restaurants)})
    return len(restaurants)
