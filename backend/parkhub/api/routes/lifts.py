"""
Lifts API: initialize, list, assign (or wait), release, status override, sensor updates, reset.

Assignment returns 200 in both outcomes: {assigned: true, lift} or {assigned: false, wait_status: true}.
Clients poll /assign while waiting; nothing is queued server-side.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from parkhub.api.deps import Caller, require_admin, require_user
from parkhub.config import get_site_layout
from parkhub.core.errors import NotFound
from parkhub.db.session import get_db
from parkhub.models.booking import Booking
from parkhub.services.booking_service import get_booking
from parkhub.services.lift_service import (
    assign_lift,
    get_lift,
    initialize_lifts,
    lift_to_dict,
    lifts_for_block,
    list_lifts,
    release_lift,
    reset_lifts,
    update_lift_sensor,
    update_lift_status,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class AssignLiftBody(BaseModel):
    booking_id: str = Field(..., min_length=1, max_length=32)
    block_id: str = Field(..., min_length=1, max_length=32)
    vehicle_number: str = Field(..., min_length=1, max_length=20)


class ReleaseLiftBody(BaseModel):
    lift_id: str = Field(..., min_length=1, max_length=48)
    booking_id: str | None = Field(None, max_length=32)


class LiftStatusBody(BaseModel):
    status: str = Field(..., description="available | occupied | in_transit | maintenance")


class LiftSensorBody(BaseModel):
    sensor_status: bool
    floor: str | None = Field(None, max_length=16)


def _owned_booking(db: Session, booking_id: str, caller: Caller) -> Booking:
    booking = get_booking(db, booking_id)
    if not caller.is_admin and booking.user_id != caller.user_id:
        raise NotFound("Booking not found", booking_id=booking_id)
    return booking


@router.post("/initialize", status_code=201)
def post_initialize(db: Session = Depends(get_db), caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    """Create lifts_per_block lifts for every block. Existing lifts are kept."""
    lifts = initialize_lifts(db, get_site_layout().lifts_per_block)
    return {"message": "Lifts initialized", "count": len(lifts), "lifts": [lift_to_dict(l) for l in lifts]}


@router.get("")
def get_lifts(db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"success": True, "lifts": [lift_to_dict(l) for l in list_lifts(db)]}


@router.get("/block/{block_id}")
def get_block_lifts(block_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"success": True, "lifts": [lift_to_dict(l) for l in lifts_for_block(db, block_id)]}


@router.post("/assign")
def post_assign(body: AssignLiftBody, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    _owned_booking(db, body.booking_id, caller)
    return assign_lift(db, body.booking_id, body.block_id, body.vehicle_number).to_dict()


@router.post("/release")
def post_release(body: ReleaseLiftBody, db: Session = Depends(get_db), caller: Caller = Depends(require_user)) -> dict[str, Any]:
    """After vehicle pickup: lift back to available. Users release their own booking's lift; only admins may omit booking_id."""
    if body.booking_id:
        _owned_booking(db, body.booking_id, caller)
    elif not caller.is_admin:
        raise HTTPException(status_code=403, detail="booking_id is required")
    lift = release_lift(db, body.lift_id, body.booking_id)
    return {"success": True, "message": "Lift released successfully", "lift": lift_to_dict(lift)}


@router.put("/status/{lift_id}")
def put_status(
    lift_id: str,
    body: LiftStatusBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    lift = update_lift_status(db, lift_id, body.status)
    return {"success": True, "message": "Lift status updated", "lift": lift_to_dict(lift)}


@router.put("/sensor/{lift_id}")
def put_sensor(lift_id: str, body: LiftSensorBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Hardware bridge: car presence and floor. Does not change allocation status."""
    lift = update_lift_sensor(db, lift_id, body.sensor_status, body.floor)
    return {"success": True, "message": "Sensor status updated", "lift": lift_to_dict(lift)}


@router.post("/reset")
def post_reset(db: Session = Depends(get_db), caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    lifts = reset_lifts(db)
    return {"success": True, "message": "All lifts reset to available", "count": len(lifts), "lifts": [lift_to_dict(l) for l in lifts]}


@router.get("/{lift_id}")
def get_one_lift(lift_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"success": True, "lift": lift_to_dict(get_lift(db, lift_id))}
