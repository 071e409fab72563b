from datetime import date

from fastapi import APIRouter, Depends, Query

from backend.app.dependencies import get_availability_service
from backend.app.routers.schemas import AvailabilityOut, SlotOut
from backend.app.services.availability import AvailabilityService

router = APIRouter()


@router.get("/restaurants/{restaurant_id}/availability", response_model=AvailabilityOut)
async def get_availability(
    restaurant_id: str,
    day: date = Query(alias="date"),
    party_size: int = Query(default=2, ge=1, le=20),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityOut:
    """Bookable slots for one date; unknown restaurants and bad configuration yield no slots."""
    result = await service.get_availability(restaurant_id, day, party_size)
    return AvailabilityOut(
        restaurant_id=restaurant_id,
        date=day,
        party_size=party_size,
        has_availability=result.has_availability,
        slots=[SlotOut.model_validate(slot) for slot in result.slots],
    )
