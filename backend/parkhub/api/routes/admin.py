"""
Admin API: lot CRUD, site bootstrap, orphan spot release. Every route requires the admin capability.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from parkhub.api.deps import Caller, require_admin
from parkhub.config import get_site_layout
from parkhub.db.session import get_db
from parkhub.services.allocation_service import spot_to_dict
from parkhub.services.lot_service import (
    create_lot,
    delete_lot,
    initialize_site,
    lot_availability,
    lot_to_dict,
    release_orphan_spot,
    update_lot,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateLotBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    block_id: str | None = Field(None, max_length=32, description="Block code; defaults to the upper-cased name")
    address: str | None = Field(None, max_length=255)
    pin_code: str | None = Field(None, max_length=10)
    price_per_hour: float = Field(..., ge=0)
    capacity: int = Field(..., ge=0, le=10_000)


class UpdateLotBody(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    address: str | None = Field(None, max_length=255)
    pin_code: str | None = Field(None, max_length=10)
    price_per_hour: float | None = Field(None, ge=0)
    capacity: int | None = Field(None, ge=0, le=10_000)


@router.post("/lots", status_code=201)
def post_lot(
    body: CreateLotBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    lot = create_lot(
        db,
        name=body.name,
        capacity=body.capacity,
        price_per_hour=body.price_per_hour,
        block_code=body.block_id,
        address=body.address,
        pin_code=body.pin_code,
    )
    return lot_to_dict(lot, lot_availability(db, lot))


@router.put("/lots/{lot_id}")
def put_lot(
    lot_id: str,
    body: UpdateLotBody,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_admin),
) -> dict[str, Any]:
    lot = update_lot(db, lot_id, **body.model_dump(exclude_none=True))
    return lot_to_dict(lot, lot_availability(db, lot))


@router.delete("/lots/{lot_id}")
def remove_lot(lot_id: str, db: Session = Depends(get_db), caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    delete_lot(db, lot_id)
    return {"ok": True, "message": "Lot deleted"}


@router.post("/site/initialize")
def post_initialize_site(db: Session = Depends(get_db), caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    """Create configured blocks, their spots and lifts. Safe to call repeatedly."""
    return {"ok": True, **initialize_site(db, get_site_layout())}


@router.post("/spots/{spot_id}/release")
def post_release_spot(spot_id: str, db: Session = Depends(get_db), caller: Caller = Depends(require_admin)) -> dict[str, Any]:
    """Free an occupied spot that no active booking holds."""
    spot = release_orphan_spot(db, spot_id)
    logger.warning("Admin %s released orphan spot %s", caller.user_id, spot.label)
    return {"ok": True, "spot": spot_to_dict(spot)}
