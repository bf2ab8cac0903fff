"""
Seat hold endpoints.
"""

import secrets

from fastapi import APIRouter, Depends, status

from ..schemas.common import ErrorResponse
from ..schemas.hold import (
    HoldCancelResponse, HoldCreateRequest, HoldExtendRequest, HoldResponse, HoldSetResponse
)
from ..services.inventory_service import InventoryService
from ..services.reservation_ledger import HoldSet, ReservationLedger
from ..utils.dependencies import get_inventory_service, get_ledger

router = APIRouter(prefix="/holds", tags=["holds"])


def to_response(hold_set: HoldSet) -> HoldSetResponse:
    return HoldSetResponse(
        session_token=hold_set.session_token,
        show_id=hold_set.show_id,
        expires_at=hold_set.expires_at,
        seats=[HoldResponse(seat_id=seat.seat_id, price_at_hold=seat.price_at_hold) for seat in hold_set.seats],
        total_amount=hold_set.total_amount,
    )


@router.post(
    "",
    response_model=HoldSetResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown seat or show"},
        409: {"model": ErrorResponse, "description": "Seats already held or sold"},
        422: {"model": ErrorResponse, "description": "Invalid selection"},
    },
)
async def create_holds(
    request: HoldCreateRequest,
    ledger: ReservationLedger = Depends(get_ledger),
    inventory: InventoryService = Depends(get_inventory_service)
):
    """
    Hold a set of seats for one checkout attempt.

    Either every seat is held or none is. Responds 409 with the conflicting
    seat ids when any seat is already held or sold.
    """
    seat_ids = set(request.seat_ids)
    if request.seat_labels:
        resolved = await inventory.resolve_seat_labels(request.show_id, request.seat_labels)
        seat_ids.update(resolved.values())

    session_token = request.session_token or secrets.token_urlsafe(24)
    result = await ledger.create_holds(seat_ids, session_token, request.ttl_seconds)
    return to_response(result.unwrap())


@router.get("/{session_token}", response_model=HoldSetResponse, responses={410: {"model": ErrorResponse}})
async def get_holds(session_token: str, ledger: ReservationLedger = Depends(get_ledger)):
    """Get the live holds of a checkout attempt. Responds 410 once they have lapsed."""
    return to_response((await ledger.get_active_holds(session_token)).unwrap())


@router.delete("/{session_token}", response_model=HoldCancelResponse)
async def cancel_holds(session_token: str, ledger: ReservationLedger = Depends(get_ledger)):
    """Release the seats of a checkout attempt. Safe to repeat."""
    cancelled = (await ledger.cancel_holds(session_token)).unwrap()
    return HoldCancelResponse(session_token=session_token, cancelled_count=cancelled)


@router.post("/{session_token}/extend", response_model=HoldSetResponse)
async def extend_holds(
    session_token: str,
    request: HoldExtendRequest,
    ledger: ReservationLedger = Depends(get_ledger)
):
    """Push the expiry of a checkout's holds forward."""
    result = await ledger.extend_holds(session_token, request.additional_seconds)
    return to_response(result.unwrap())
