from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.app.scheduling.models import ReservationStatus


class CreateReservationIn(BaseModel):
    restaurant_id: str
    user_id: str = Field(min_length=1, max_length=200)
    party_size: int = Field(ge=1, le=20)
    # ISO 8601 with offset, e.g. "2025-11-05T19:00:00-05:00"
    reservation_time: datetime
    turn_time_override: int | None = Field(default=None, ge=1, le=480)
    auto_confirm: bool = False
    notes: str | None = Field(default=None, max_length=1024)


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    restaurant_id: str
    user_id: str
    table_id: str | None
    joined_table_id: str | None
    reservation_time: datetime
    party_size: int
    turn_time_used: int
    status: ReservationStatus
    notes: str | None
    created_at: datetime | None
    updated_at: datetime | None


class ReservationListOut(BaseModel):
    reservations: list[ReservationOut]


class ReservationActionIn(BaseModel):
    action: Literal["cancel", "confirm", "complete", "no_show"]


class SlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time: str
    available: bool
    table_id: str | None = None


class AvailabilityOut(BaseModel):
    restaurant_id: str
    date: date
    party_size: int
    has_availability: bool
    slots: list[SlotOut]


class ServiceWindowOut(BaseModel):
    open_time: time
    close_time: time


class TableUsageOut(BaseModel):
    id: str
    name: str
    capacity_min: int
    capacity_max: int
    is_joinable: bool
    reservations: list[ReservationOut]


class TableUtilizationOut(BaseModel):
    restaurant_id: str
    restaurant_name: str
    date: date
    operating_hours: list[ServiceWindowOut]
    tables: list[TableUsageOut]
