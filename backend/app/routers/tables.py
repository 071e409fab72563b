from datetime import date

from fastapi import APIRouter, Depends, Query

from backend.app.dependencies import get_reservation_service
from backend.app.routers.schemas import ReservationOut, ServiceWindowOut, TableUsageOut, TableUtilizationOut
from backend.app.services.reservations import ReservationService

router = APIRouter()


@router.get("/restaurants/{restaurant_id}/tables", response_model=TableUtilizationOut)
async def get_table_utilization(
    restaurant_id: str,
    day: date = Query(alias="date"),
    service: ReservationService = Depends(get_reservation_service),
) -> TableUtilizationOut:
    """Tables with their pending and confirmed reservations for one local date."""
    utilization = await service.table_utilization(restaurant_id, day)
    return TableUtilizationOut(
        restaurant_id=utilization.restaurant.id,
        restaurant_name=utilization.restaurant.name,
        date=day,
        operating_hours=[
            ServiceWindowOut(open_time=open_time, close_time=close_time)
            for open_time, close_time in utilization.windows
        ],
        tables=[
            TableUsageOut(
                id=usage.table.id,
                name=usage.table.name,
                capacity_min=usage.table.capacity_min,
                capacity_max=usage.table.capacity_max,
                is_joinable=usage.table.is_joinable,
                reservations=[ReservationOut.model_validate(r) for r in usage.reservations],
            )
            for usage in utilization.tables
        ],
    )
