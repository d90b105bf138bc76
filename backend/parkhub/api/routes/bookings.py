"""
Bookings API: create (claims a spot), payment, park, release (bill + free), cancel, listings.

Users act on their own bookings only; admins on any. Someone else's booking reads as not found.
"""
import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from parkhub.api.deps import Caller, require_admin, require_user
from parkhub.core.errors import InvalidArgument, NotFound
from parkhub.db.session import get_db
from parkhub.models.booking import Booking
from parkhub.services.booking_service import (
    booking_to_dict,
    cancel_booking,
    complete_booking,
    create_booking,
    get_booking,
    list_active_for_user,
    list_bookings,
    list_for_user,
    mark_paid,
    mark_payment_failed,
    park,
)
from parkhub.services.lot_service import parking_stats

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateBookingBody(BaseModel):
    user_id: str | None = Field(None, max_length=64, description="Admins may book for a user; ignored for users")
    vehicle_number: str = Field(..., min_length=4, max_length=20)
    block_id: str = Field(..., min_length=1, max_length=32, description="Block code (BLOCK-A) or lot id")
    vehicle_type: str = Field("CAR", max_length=8, description="CAR or BIKE")
    floor: str | None = Field(None, max_length=16)


class PaymentBody(BaseModel):
    payment_status: str = Field(..., pattern="^(paid|failed)$")
    transaction_id: str | None = Field(None, max_length=128)


class ReleaseBody(BaseModel):
    vehicle_type: str | None = Field(None, max_length=8, description="CAR or BIKE; defaults to the booking's type")
    exit_time: datetime | None = None


def _owned_booking(db: Session, booking_id: str, caller: Caller) -> Booking:
    booking = get_booking(db, booking_id)
    if not caller.is_admin and booking.user_id != caller.user_id:
        raise NotFound("Booking not found", booking_id=booking_id)
    return booking


@router.get("")
def get_bookings(db: Session = Depends(get_db), caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    return {"success": True, "bookings": [booking_to_dict(b) for b in list_bookings(db)]}


@router.get("/stats")
def get_parking_stats(db: Session = Depends(get_db)) -> dict[str, Any]:
    """Real-time totals and per-block breakdown, recomputed from spot rows."""
    return {"success": True, "stats": parking_stats(db)}


@router.get("/history")
def get_history(db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    """The caller's bookings in every status (completed ones carry their cost), newest first."""
    return {"success": True, "bookings": [booking_to_dict(b) for b in list_for_user(db, caller.user_id)]}


@router.get("/user/{user_id}")
def get_user_bookings(user_id: str, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    """Active bookings (payment_pending, paid, parked) for a user, newest first."""
    if not caller.is_admin and user_id != caller.user_id:
        return {"success": True, "bookings": []}
    return {"success": True, "bookings": [booking_to_dict(b) for b in list_active_for_user(db, user_id)]}


@router.post("", status_code=201)
def post_booking(body: CreateBookingBody, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    user_id = (body.user_id or caller.user_id) if caller.is_admin else caller.user_id
    if not user_id:
        raise InvalidArgument("user_id is required")
    booking = create_booking(
        db,
        user_id=user_id,
        vehicle_number=body.vehicle_number,
        lot_ref=body.block_id,
        vehicle_type=body.vehicle_type,
        floor=body.floor,
    )
    return {"success": True, "booking": booking_to_dict(booking), "message": "Booking created successfully"}


@router.get("/{booking_id}")
def get_one_booking(booking_id: str, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    return {"success": True, "booking": booking_to_dict(_owned_booking(db, booking_id, caller))}


@router.put("/{booking_id}/payment")
def put_payment(
    booking_id: str,
    body: PaymentBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_user),
) -> dict[str, Any]:
    """Payment callback from the checkout flow. 'paid' moves the booking on; 'failed' only records it."""
    booking = _owned_booking(db, booking_id, caller)
    if body.payment_status == "paid":
        booking = mark_paid(db, booking.id, body.transaction_id)
    else:
        booking = mark_payment_failed(db, booking.id)
    return {"success": True, "booking": booking_to_dict(booking), "message": "Payment updated successfully"}


@router.post("/{booking_id}/park")
def post_park(booking_id: str, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    booking = park(db, _owned_booking(db, booking_id, caller).id)
    return {"success": True, "booking": booking_to_dict(booking)}


@router.post("/{booking_id}/release")
def post_release(
    booking_id: str,
    body: ReleaseBody | None = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_user),
) -> dict[str, Any]:
    """Vehicle exit: compute the charge, complete the booking, free spot and lift."""
    body = body or ReleaseBody()
    booking = _owned_booking(db, booking_id, caller)
    result = complete_booking(db, booking.id, exit_time=body.exit_time, vehicle_type=body.vehicle_type)
    return {
        "success": True,
        "booking": booking_to_dict(result["booking"]),
        "cost": result["cost"],
        "duration": f"{result['duration_hours']:.2f}",
        "message": "Parking released successfully",
    }


@router.delete("/{booking_id}")
def delete_booking(booking_id: str, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    booking = cancel_booking(db, _owned_booking(db, booking_id, caller).id)
    return {"success": True, "booking": booking_to_dict(booking), "message": "Booking cancelled and slot released"}
