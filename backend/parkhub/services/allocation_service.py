"""
Spot allocation: lazy idempotent fill, compare-and-set claim, release, availability.

- Spots for a lot are rows (lot_id, spot_index) with index in [1, capacity]. Missing rows are
  created on demand with INSERT .. ON CONFLICT DO NOTHING, so concurrent or repeated fills can
  never produce duplicate indices (UNIQUE(lot_id, spot_index) decides).
- Claim = pick the lowest-index Available spot, then
  UPDATE .. SET status='O' WHERE id=:id AND status='A'. rowcount 0 means another request won;
  move on to the next candidate. Nothing here ever reads a status and writes it back.
- Release = the reverse CAS (O -> A). Releasing a spot that is not occupied is an error.
- Callers own the transaction: these functions flush, they do not commit.
"""
import logging
import uuid

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from parkhub.core.constants import MAX_CLAIM_ATTEMPTS, SPOT_AVAILABLE, SPOT_OCCUPIED
from parkhub.core.errors import InvalidState, NoCapacity, NotFound
from parkhub.core.timeutil import utcnow
from parkhub.db.insert import insert_ignore_conflicts
from parkhub.models.parking_lot import ParkingLot
from parkhub.models.parking_spot import ParkingSpot

logger = logging.getLogger(__name__)


def spot_label(lot: ParkingLot, spot_index: int) -> str:
    """
    Human label unique across blocks: the block letter for site blocks (BLOCK-A -> 'A-3'),
    otherwise the upper-cased first letter of the lot name ('Downtown' -> 'D-3').
    """
    code = (lot.block_code or "").strip()
    if "-" in code:
        prefix = code.rsplit("-", 1)[1]
    else:
        prefix = (lot.name or "").strip()[:1].upper()
    return f"{prefix or 'S'}-{spot_index}"


def get_lot(db: Session, lot_id: str) -> ParkingLot:
    lot = db.get(ParkingLot, lot_id)
    if lot is None:
        raise NotFound("Parking lot not found", lot_id=lot_id)
    return lot


def ensure_spots(db: Session, lot: ParkingLot) -> list[int]:
    """
    Create any missing spot rows 1..capacity for lot (status Available). Idempotent.
    Returns the sorted list of spot indices that exist within capacity afterwards.
    """
    existing = {
        i for (i,) in db.query(ParkingSpot.spot_index).filter(ParkingSpot.lot_id == lot.id).all()
    }
    missing = [i for i in range(1, lot.capacity + 1) if i not in existing]
    if missing:
        rows = [
            {
                "id": uuid.uuid4().hex,
                "lot_id": lot.id,
                "spot_index": i,
                "status": SPOT_AVAILABLE,
                "label": spot_label(lot, i),
                "version": 0,
            }
            for i in missing
        ]
        insert_ignore_conflicts(db, ParkingSpot, rows, ["lot_id", "spot_index"])
        db.flush()
        logger.info("Lot %s: filled %s missing spots (capacity=%s)", lot.block_code, len(missing), lot.capacity)
    return sorted(
        i
        for (i,) in db.query(ParkingSpot.spot_index)
        .filter(ParkingSpot.lot_id == lot.id, ParkingSpot.spot_index <= lot.capacity)
        .all()
    )


def _claim_spot(db: Session, spot_id: str) -> bool:
    """CAS A -> O. True if this call won the spot."""
    result = db.execute(
        update(ParkingSpot)
        .where(ParkingSpot.id == spot_id, ParkingSpot.status == SPOT_AVAILABLE)
        .values(status=SPOT_OCCUPIED, version=ParkingSpot.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def allocate_spot(db: Session, lot_id: str, vehicle_number: str | None = None) -> ParkingSpot:
    """
    Fill the lot if needed, then claim its lowest-index Available spot.
    Raises NotFound (unknown lot) or NoCapacity (nothing left within capacity).
    """
    lot = get_lot(db, lot_id)
    ensure_spots(db, lot)
    tried: set[str] = set()
    for _ in range(MAX_CLAIM_ATTEMPTS):
        q = db.query(ParkingSpot.id).filter(
            ParkingSpot.lot_id == lot.id,
            ParkingSpot.status == SPOT_AVAILABLE,
            ParkingSpot.spot_index <= lot.capacity,
        )
        if tried:
            q = q.filter(ParkingSpot.id.notin_(tried))
        candidate = q.order_by(ParkingSpot.spot_index.asc()).first()
        if candidate is None:
            break
        spot_id = candidate[0]
        if _claim_spot(db, spot_id):
            db.flush()
            spot = db.get(ParkingSpot, spot_id)
            db.refresh(spot)
            logger.info("Spot %s (%s) claimed for vehicle=%s", spot.label, lot.block_code, vehicle_number)
            return spot
        logger.debug("Spot %s: lost claim race, trying next", spot_id)
        tried.add(spot_id)
    raise NoCapacity("No available spots in this lot", lot_id=lot.id, block_code=lot.block_code)


def release_spot(db: Session, spot_id: str) -> ParkingSpot:
    """CAS O -> A. Raises NotFound for an unknown spot, InvalidState if it is not occupied."""
    spot = db.get(ParkingSpot, spot_id)
    if spot is None:
        raise NotFound("Parking spot not found", spot_id=spot_id)
    result = db.execute(
        update(ParkingSpot)
        .where(ParkingSpot.id == spot_id, ParkingSpot.status == SPOT_OCCUPIED)
        .values(status=SPOT_AVAILABLE, version=ParkingSpot.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState("Spot is not occupied (already released)", spot_id=spot_id)
    db.flush()
    db.refresh(spot)
    logger.info("Spot %s released", spot.label)
    return spot


def lot_availability(db: Session, lot: ParkingLot) -> dict[str, int]:
    """{capacity, occupied, available}: occupied counts spots within capacity, clamped to [0, capacity]."""
    occupied = (
        db.query(func.count(ParkingSpot.id))
        .filter(
            ParkingSpot.lot_id == lot.id,
            ParkingSpot.status == SPOT_OCCUPIED,
            ParkingSpot.spot_index <= lot.capacity,
        )
        .scalar()
        or 0
    )
    capacity = max(lot.capacity or 0, 0)
    occupied = min(max(occupied, 0), capacity)
    return {"capacity": capacity, "occupied": occupied, "available": capacity - occupied}


def spot_to_dict(spot: ParkingSpot, lot: ParkingLot | None = None) -> dict:
    out = {
        "id": spot.id,
        "lot_id": spot.lot_id,
        "spot_index": spot.spot_index,
        "label": spot.label,
        "status": spot.status,
    }
    if lot is not None:
        out["lot_name"] = lot.name
        out["block_code"] = lot.block_code
        out["price_per_hour"] = lot.price_per_hour
    return out
