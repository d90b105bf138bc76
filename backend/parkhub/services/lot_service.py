"""
Lot (block) administration, site bootstrap and occupancy statistics.

Site layout comes from configuration (blocks_per_site, slots_per_block, lifts_per_block), so a
4 x 40 garage with 2 lifts per block is just the default, not a constant.
"""
import logging
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parkhub.config import SiteLayout, settings
from parkhub.core.constants import ACTIVE_BOOKING_STATUSES, BLOCK_CODE_MAX_LEN, SPOT_AVAILABLE
from parkhub.core.errors import Conflict, InvalidArgument, NotFound
from parkhub.core.timeutil import iso
from parkhub.models.booking import Booking
from parkhub.models.lift import Lift
from parkhub.models.parking_lot import ParkingLot
from parkhub.models.parking_spot import ParkingSpot
from parkhub.services.allocation_service import ensure_spots, get_lot, lot_availability, release_spot, spot_label
from parkhub.services.lift_service import initialize_lifts

logger = logging.getLogger(__name__)


def _validate_lot_fields(capacity: int | None, price_per_hour: float | None) -> None:
    if capacity is not None and capacity < 0:
        raise InvalidArgument("capacity must be >= 0", capacity=capacity)
    if price_per_hour is not None and price_per_hour < 0:
        raise InvalidArgument("price_per_hour must be >= 0", price_per_hour=price_per_hour)


def _lot_with_code(db: Session, code: str) -> ParkingLot | None:
    return db.query(ParkingLot).filter(ParkingLot.block_code == code).first()


def create_lot(
    db: Session,
    name: str,
    capacity: int,
    price_per_hour: float,
    block_code: str | None = None,
    address: str | None = None,
    pin_code: str | None = None,
) -> ParkingLot:
    """
    Create a lot and its spots 1..capacity. block_code defaults to the upper-cased name and must
    fit BLOCK_CODE_MAX_LEN (InvalidArgument). A taken code is a Conflict, also when a concurrent
    create wins the unique index.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidArgument("name is required")
    _validate_lot_fields(capacity, price_per_hour)
    code = (block_code or name).strip().upper()
    if len(code) > BLOCK_CODE_MAX_LEN:
        raise InvalidArgument(
            f"block code must be at most {BLOCK_CODE_MAX_LEN} characters; pass a shorter block_id",
            block_code=code,
        )
    if _lot_with_code(db, code) is not None:
        raise Conflict("A lot with this block code already exists", block_code=code)
    lot = ParkingLot(
        id=uuid.uuid4().hex,
        block_code=code,
        name=name,
        address=address,
        pin_code=pin_code,
        price_per_hour=price_per_hour,
        capacity=capacity,
    )
    try:
        db.add(lot)
        db.flush()
        ensure_spots(db, lot)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A lot with this block code already exists", block_code=code)
    db.refresh(lot)
    logger.info("Lot %s (%s) created with capacity=%s", lot.block_code, lot.name, lot.capacity)
    return lot


def update_lot(db: Session, lot_id: str, **fields) -> ParkingLot:
    """
    Update name/address/pin_code/price_per_hour/capacity. Shrinking capacity deletes the surplus
    spots, and is refused (Conflict) while any of them is occupied.
    """
    lot = get_lot(db, lot_id)
    _validate_lot_fields(fields.get("capacity"), fields.get("price_per_hour"))
    new_capacity = fields.get("capacity")
    if new_capacity is not None and new_capacity < lot.capacity:
        # only free spots are deleted; anything left above the new capacity is occupied
        db.query(ParkingSpot).filter(
            ParkingSpot.lot_id == lot.id,
            ParkingSpot.spot_index > new_capacity,
            ParkingSpot.status == SPOT_AVAILABLE,
        ).delete(synchronize_session=False)
        busy = (
            db.query(func.count(ParkingSpot.id))
            .filter(ParkingSpot.lot_id == lot.id, ParkingSpot.spot_index > new_capacity)
            .scalar()
        )
        if busy:
            db.rollback()
            raise Conflict("Cannot shrink lot below occupied spots", occupied_above=busy, capacity=new_capacity)
    for key in ("name", "address", "pin_code", "price_per_hour", "capacity"):
        if fields.get(key) is not None:
            setattr(lot, key, fields[key])
    db.flush()
    if fields.get("name") is not None:
        for spot in db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id).all():
            spot.label = spot_label(lot, spot.spot_index)
    ensure_spots(db, lot)
    db.commit()
    db.refresh(lot)
    logger.info("Lot %s updated: %s", lot.block_code, sorted(k for k, v in fields.items() if v is not None))
    return lot


def delete_lot(db: Session, lot_id: str) -> None:
    """Delete a lot with its spots, lifts and past bookings. Refused while any booking is active."""
    lot = get_lot(db, lot_id)
    active = (
        db.query(func.count(Booking.id))
        .filter(Booking.lot_id == lot.id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .scalar()
    )
    if active:
        raise Conflict("Lot has active bookings", active_bookings=active)
    db.query(Booking).filter(Booking.lot_id == lot.id).delete(synchronize_session=False)
    db.query(Lift).filter(Lift.lot_id == lot.id).delete(synchronize_session=False)
    db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id).delete(synchronize_session=False)
    db.delete(lot)
    db.commit()
    logger.warning("Lot %s deleted", lot.block_code)


def list_lots(db: Session, query: str | None = None) -> list[dict]:
    """All lots (optionally name/address search), lazily filling missing spots, with availability."""
    q = db.query(ParkingLot)
    if query and query.strip():
        like = f"%{query.strip()}%"
        q = q.filter(ParkingLot.name.ilike(like) | ParkingLot.address.ilike(like) | ParkingLot.block_code.ilike(like))
    lots = q.order_by(ParkingLot.block_code.asc()).all()
    out = []
    for lot in lots:
        ensure_spots(db, lot)
        out.append(lot_to_dict(lot, lot_availability(db, lot)))
    db.commit()
    return out


def lot_detail(db: Session, lot_id: str) -> dict:
    lot = get_lot(db, lot_id)
    ensure_spots(db, lot)
    db.commit()
    return lot_to_dict(lot, lot_availability(db, lot))


def list_spots(db: Session, lot_id: str) -> list[ParkingSpot]:
    lot = get_lot(db, lot_id)
    return (
        db.query(ParkingSpot)
        .filter(ParkingSpot.lot_id == lot.id, ParkingSpot.spot_index <= lot.capacity)
        .order_by(ParkingSpot.spot_index.asc())
        .all()
    )


def spot_detail(db: Session, spot_id: str) -> dict:
    """Spot with its lot and the active booking holding it (if any)."""
    spot = db.get(ParkingSpot, spot_id)
    if spot is None:
        raise NotFound("Spot not found", spot_id=spot_id)
    lot = db.get(ParkingLot, spot.lot_id)
    booking = (
        db.query(Booking)
        .filter(Booking.spot_id == spot.id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .first()
    )
    return {
        "id": spot.id,
        "lot_id": spot.lot_id,
        "status": spot.status,
        "label": spot.label,
        "lot_name": lot.name if lot else None,
        "price_per_hour": lot.price_per_hour if lot else None,
        "vehicle_number": booking.vehicle_number if booking else None,
        "booking_id": booking.id if booking else None,
        "user_id": booking.user_id if booking else None,
        "entry_time": iso(booking.entry_time or booking.booking_time) if booking else None,
    }


def release_orphan_spot(db: Session, spot_id: str) -> ParkingSpot:
    """
    Admin: free an occupied spot that no active booking holds (e.g. left over from a crash).
    Spots held by a booking must be freed by completing or cancelling that booking.
    """
    holder = (
        db.query(Booking.id)
        .filter(Booking.spot_id == spot_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .first()
    )
    if holder is not None:
        raise Conflict("Spot is held by an active booking; complete or cancel it instead", booking_id=holder[0])
    try:
        spot = release_spot(db, spot_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return spot


def initialize_site(db: Session, layout: SiteLayout) -> dict:
    """
    Idempotent bootstrap: one lot per configured block (capacity = slots_per_block), its spots,
    and lifts_per_block lifts per block. Existing lots are left as they are.
    """
    created = []
    for code in layout.block_codes():
        if _lot_with_code(db, code) is not None:
            continue
        lot = ParkingLot(
            id=uuid.uuid4().hex,
            block_code=code,
            name=code,
            price_per_hour=settings.default_price_per_hour,
            capacity=layout.slots_per_block,
        )
        db.add(lot)
        db.flush()
        ensure_spots(db, lot)
        created.append(code)
    db.commit()
    lifts = initialize_lifts(db, layout.lifts_per_block)
    logger.info("Site initialized: %s blocks created (%s), %s lifts", len(created), created, len(lifts))
    return {"created_blocks": created, "lift_count": len(lifts)}


def parking_stats(db: Session) -> dict:
    """Site-wide and per-block capacity/occupied/available, recomputed from spot rows."""
    blocks = []
    total = occupied = 0
    for lot in db.query(ParkingLot).order_by(ParkingLot.block_code.asc()).all():
        a = lot_availability(db, lot)
        total += a["capacity"]
        occupied += a["occupied"]
        blocks.append({"block_id": lot.block_code, "lot_id": lot.id, **a})
    return {"total": total, "occupied": occupied, "available": total - occupied, "blocks": blocks}


def lot_to_dict(lot: ParkingLot, availability: dict | None = None) -> dict:
    out = {
        "id": lot.id,
        "block_id": lot.block_code,
        "name": lot.name,
        "address": lot.address,
        "pin_code": lot.pin_code,
        "price_per_hour": lot.price_per_hour,
        "capacity": lot.capacity,
    }
    if availability is not None:
        out.update(availability)
        out["availability"] = f"{availability['available']}/{availability['capacity']}"
    return out
