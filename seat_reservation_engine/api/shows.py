"""
Seat inventory and availability endpoints.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from ..schemas.seat import SeatAvailabilityResponse, SeatResponse
from ..services.availability_service import AvailabilityService
from ..services.inventory_service import InventoryService
from ..utils.clock import utcnow
from ..utils.dependencies import get_availability_service, get_inventory_service

router = APIRouter(tags=["seats"])


@router.get("/shows/{show_id}/seats", response_model=List[SeatResponse])
async def get_seats(
    show_id: UUID,
    inventory: InventoryService = Depends(get_inventory_service)
):
    """Get every seat of a show with its base price and position."""
    return await inventory.get_seats(show_id)


@router.get("/shows/{show_id}/availability", response_model=SeatAvailabilityResponse)
async def get_availability(
    show_id: UUID,
    availability: AvailabilityService = Depends(get_availability_service)
):
    """
    Get the availability of every seat of a show.

    Each seat is ``available``, ``held`` or ``sold``; the map is computed
    from a single snapshot.
    """
    now = utcnow()
    seats = await availability.get_availability(show_id, now)
    return SeatAvailabilityResponse(
        show_id=show_id,
        seats={seat_id: status.value for seat_id, status in seats.items()},
        summary=AvailabilityService.count_by_status(seats),
        generated_at=now,
    )


@router.get("/seats/{seat_id}", response_model=SeatResponse)
async def get_seat(
    seat_id: UUID,
    inventory: InventoryService = Depends(get_inventory_service)
):
    """Get one seat."""
    return await inventory.get_seat(seat_id)
