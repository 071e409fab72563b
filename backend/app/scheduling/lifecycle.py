from __future__ import annotations

from backend.app.core.errors import AlreadyCancelled, AlreadyCompleted, InvalidTransition
from backend.app.scheduling.models import ReservationStatus

S = ReservationStatus

TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.CANCELLED, S.COMPLETED, S.NO_SHOW}),
    S.CANCELLED: frozenset(),
    S.COMPLETED: frozenset(),
    S.NO_SHOW: frozenset(),
}


def initial_status(auto_confirm: bool) -> ReservationStatus:
    return S.CONFIRMED if auto_confirm else S.PENDING


def ensure_transition(reservation_id: str, current: ReservationStatus, target: ReservationStatus) -> None:
    if target in TRANSITIONS[current]:
        return
    if current is S.CANCELLED:
        raise AlreadyCancelled("Reservation is already cancelled", reservation_id=reservation_id)
    if current is S.COMPLETED:
        raise AlreadyCompleted("Reservation is already completed", reservation_id=reservation_id)
    raise InvalidTransition(
        f"Cannot move reservation from {current.value} to {target.value}",
        reservation_id=reservation_id,
        current_status=current.value,
        requested_status=target.value,
    )
