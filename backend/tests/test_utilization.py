from datetime import datetime, time, timedelta, timezone

from backend.app.scheduling.models import Reservation, ReservationStatus, Table
from backend.app.scheduling.utilization import table_usage


def reservation(rid, table_id, start, *, joined=None, status=ReservationStatus.CONFIRMED):
    return Reservation(
        id=rid,
        restaurant_id="resto-1",
        user_id="guest",
        table_id=table_id,
        joined_table_id=joined,
        reservation_time=start,
        party_size=2,
        turn_time_used=90,
        status=status,
    )


def test_reservations_grouped_per_table(booking_day):
    day_start = datetime.combine(booking_day, time(0, 0), tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)
    tables = [
        Table("b", 4, 6, is_joinable=True, name="Patio"),
        Table("a", 4, 6, is_joinable=True, name="Bar"),
        Table("c", 2, 4, name="Window"),
    ]
    reservations = [
        reservation("late", "c", day_start + timedelta(hours=20)),
        reservation("joined", "a", day_start + timedelta(hours=19), joined="b"),
        reservation("early", "c", day_start + timedelta(hours=17)),
        reservation("gone", "c", day_start + timedelta(hours=18), status=ReservationStatus.CANCELLED),
        reservation("yesterday", "c", day_start - timedelta(hours=2)),
        reservation("tomorrow", "c", day_end),
    ]

    usage = table_usage(tables, reservations, day_start, day_end)

    assert [u.table.name for u in usage] == ["Bar", "Patio", "Window"]
    assert {u.table.id: [r.id for r in u.reservations] for u in usage} == {
        "a": ["joined"],
        "b": ["joined"],
        "c": ["early", "late"],
    }


def test_tables_without_reservations_are_listed(booking_day):
    day_start = datetime.combine(booking_day, time(0, 0), tzinfo=timezone.utc)
    usage = table_usage([Table("t1", 2, 4, name="T1")], [], day_start, day_start + timedelta(days=1))
    assert len(usage) == 1
    assert usage[0].reservations == ()
