from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


# Statuses that hold a table.
ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})


@dataclass(frozen=True)
class Table:
    id: str
    capacity_min: int
    capacity_max: int
    is_joinable: bool = False
    name: str = ""

    def seats(self, party_size: int) -> bool:
        return self.capacity_min <= party_size <= self.capacity_max


@dataclass(frozen=True)
class OperatingHours:
    day_of_week: int  # 0 = Sunday
    open_time: time
    close_time: time


@dataclass(frozen=True)
class TurnTimeRule:
    party_size_min: int
    party_size_max: int
    turn_time_minutes: int

    def matches(self, party_size: int) -> bool:
        return self.party_size_min <= party_size <= self.party_size_max


@dataclass(frozen=True)
class SpecialPeriod:
    """Date-range override of the weekly calendar; a blackout closes the dates."""

    start_date: date
    end_date: date
    is_blackout: bool = False
    open_time: time | None = None
    close_time: time | None = None
    turn_time_minutes: int | None = None
    name: str = ""

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class CancellationPolicy:
    hours_before_no_fee: int | None = None
    fee_percentage: float | None = None
    fixed_fee_amount: float | None = None
    allow_online_cancellation: bool = True
    notes: str | None = None

    def terms(self) -> dict:
        return {
            "hours_before_no_fee": self.hours_before_no_fee,
            "fee_percentage": self.fee_percentage,
            "fixed_fee_amount": self.fixed_fee_amount,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Restaurant:
    """Read-only configuration snapshot consumed by one scheduling operation."""

    id: str
    name: str = ""
    timezone: str = "UTC"
    phone: str | None = None
    tables: tuple[Table, ...] = ()
    operating_hours: tuple[OperatingHours, ...] = ()
    turn_time_rules: tuple[TurnTimeRule, ...] = ()
    special_periods: tuple[SpecialPeriod, ...] = ()
    cancellation_policy: CancellationPolicy | None = None


@dataclass(frozen=True)
class Reservation:
    id: str
    restaurant_id: str
    user_id: str
    table_id: str | None
    reservation_time: datetime
    party_size: int
    turn_time_used: int
    status: ReservationStatus
    joined_table_id: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def table_ids(self) -> tuple[str, ...]:
        """Every table this reservation occupies, canonical table first."""
        return tuple(t for t in (self.table_id, self.joined_table_id) if t is not None)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class Slot:
    time: str  # restaurant-local "HH:MM"
    available: bool
    table_id: str | None = None


@dataclass(frozen=True)
class ConfigurationWarning:
    """Diagnostic for restaurant configuration that cannot produce slots."""

    restaurant_id: str
    code: str
    message: str
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SchedulingLimits:
    slot_interval_minutes: int = 30
    max_slots_per_day: int = 30
    default_turn_time_minutes: int = 120
    max_turn_time_minutes: int = 480
    min_party_size: int = 1
    max_party_size: int = 20
