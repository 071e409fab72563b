from fastapi import APIRouter, Depends, Query, status

from backend.app.dependencies import get_booking_service, get_reservation_service
from backend.app.routers.schemas import (
    CreateReservationIn,
    ReservationActionIn,
    ReservationListOut,
    ReservationOut,
)
from backend.app.services.reservations import ReservationService

router = APIRouter()


@router.post("/reservations", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: CreateReservationIn,
    service: ReservationService = Depends(get_booking_service),
) -> ReservationOut:
    reservation = await service.create_reservation(
        restaurant_id=payload.restaurant_id,
        reservation_time=payload.reservation_time,
        party_size=payload.party_size,
        user_id=payload.user_id,
        auto_confirm=payload.auto_confirm,
        turn_time_override=payload.turn_time_override,
        notes=payload.notes,
    )
    return ReservationOut.model_validate(reservation)


@router.get("/reservations", response_model=ReservationListOut)
async def list_reservations(
    restaurant_id: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationListOut:
    reservations = await service.list_reservations(restaurant_id=restaurant_id, user_id=user_id)
    return ReservationListOut(reservations=[ReservationOut.model_validate(r) for r in reservations])


@router.get("/reservations/{reservation_id}", response_model=ReservationOut)
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    return ReservationOut.model_validate(await service.get_reservation(reservation_id))


@router.patch("/reservations/{reservation_id}", response_model=ReservationOut)
async def update_reservation(
    reservation_id: str,
    payload: ReservationActionIn,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationOut:
    actions = {
        "cancel": service.cancel_reservation,
        "confirm": service.confirm_reservation,
        "complete": service.complete_reservation,
        "no_show": service.mark_no_show,
    }
    reservation = await actions[payload.action](reservation_id)
    return ReservationOut.model_validate(reservation)
