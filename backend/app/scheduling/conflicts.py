from __future__ import annotations

from collections.abc import Iterable, Sequence

from backend.app.scheduling.interval import Interval, overlaps
from backend.app.scheduling.matcher import Candidate
from backend.app.scheduling.models import Reservation


def occupied_interval(reservation: Reservation) -> Interval:
    return Interval.from_duration(reservation.reservation_time, reservation.turn_time_used)


def is_free(candidate: Candidate, proposed: Interval, reservations: Iterable[Reservation]) -> bool:
    """True if no active reservation on any table of ``candidate`` overlaps ``proposed``."""
    wanted = {table.id for table in candidate}
    for reservation in reservations:
        if not reservation.is_active:
            continue
        if wanted.isdisjoint(reservation.table_ids):
            continue
        if overlaps(occupied_interval(reservation), proposed):
            return False
    return True


def first_free_candidate(
    candidates: Sequence[Candidate],
    proposed: Interval,
    reservations: Sequence[Reservation],
) -> Candidate | None:
    for candidate in candidates:
        if is_free(candidate, proposed, reservations):
            return candidate
    return None
