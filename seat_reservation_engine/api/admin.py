"""
Operational endpoints guarded by the admin bearer token.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..schemas.booking import BookingCancelRequest, BookingResponse
from ..schemas.common import SweepResponse
from ..schemas.seat import SeatPriceUpdate, SeatProvisionRequest, SeatResponse, ShowCreate, ShowResponse
from ..services.confirmation_service import ConfirmationService
from ..services.expiry_reaper import ExpiryReaper
from ..services.inventory_service import InventoryService
from ..utils.dependencies import (
    get_confirmation_service, get_expiry_reaper, get_inventory_service, require_admin_token
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])


@router.post("/shows", response_model=ShowResponse, status_code=status.HTTP_201_CREATED)
async def create_show(request: ShowCreate, inventory: InventoryService = Depends(get_inventory_service)):
    return await inventory.create_show(request.title, request.starts_at, request.currency)


@router.post("/shows/{show_id}/seats", response_model=List[SeatResponse], status_code=status.HTTP_201_CREATED)
async def provision_seats(
    show_id: UUID,
    request: SeatProvisionRequest,
    inventory: InventoryService = Depends(get_inventory_service)
):
    """Provision a show's seat map. Allowed once per show."""
    return await inventory.provision_seats(show_id, request.seats)


@router.patch("/seats/{seat_id}/price", response_model=SeatResponse)
async def update_seat_price(
    seat_id: UUID,
    request: SeatPriceUpdate,
    inventory: InventoryService = Depends(get_inventory_service)
):
    """Change a seat's base price. Seats already held keep their held price."""
    return await inventory.update_seat_price(seat_id, request.base_price)


@router.post("/reaper/sweep", response_model=SweepResponse)
async def run_sweep(reaper: ExpiryReaper = Depends(get_expiry_reaper)):
    """Run one expiry sweep now, for deployments without the scheduled worker."""
    result = await reaper.sweep()
    return SweepResponse(released_count=result.released_count, succeeded=result.succeeded)


@router.post("/bookings/{payment_reference}/cancel", response_model=BookingResponse)
async def cancel_booking(
    payment_reference: str,
    request: BookingCancelRequest,
    confirmation: ConfirmationService = Depends(get_confirmation_service)
):
    """Cancel or refund a booking, releasing its seats."""
    booking = (await confirmation.cancel_booking(payment_reference, request.refunded)).unwrap()
    return BookingResponse.model_validate(booking)
