from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time

from backend.app.scheduling.models import Reservation, Restaurant, Table


@dataclass(frozen=True)
class TableUsage:
    table: Table
    reservations: tuple[Reservation, ...] = ()


@dataclass(frozen=True)
class TableUtilization:
    restaurant: Restaurant
    day: date
    windows: list[tuple[time, time]] = field(default_factory=list)
    tables: list[TableUsage] = field(default_factory=list)


def table_usage(
    tables: Sequence[Table],
    reservations: Sequence[Reservation],
    day_start: datetime,
    day_end: datetime,
) -> list[TableUsage]:
    """Active reservations starting in ``[day_start, day_end)``, grouped per table.

    A joined reservation is listed under both of its tables. Tables are ordered
    by name, reservations by start time.
    """
    by_table: dict[str, list[Reservation]] = {t.id: [] for t in tables}
    for reservation in sorted(reservations, key=lambda r: (r.reservation_time, r.id)):
        if not reservation.is_active or not day_start <= reservation.reservation_time < day_end:
            continue
        for table_id in reservation.table_ids:
            if table_id in by_table:
                by_table[table_id].append(reservation)

    ordered = sorted(tables, key=lambda t: (t.name, t.id))
    return [TableUsage(table=t, reservations=tuple(by_table[t.id])) for t in ordered]
