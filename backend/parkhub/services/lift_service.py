"""
Lift coordinator: per-block vehicle lifts.

Assignment is fair and race-free:
- Candidates are Available lifts in the block, oldest last_activity first (least recently used
  wins, ties broken by lift number), so one lift is never starved of rest or of work.
- Each candidate is claimed with UPDATE .. WHERE status='available' AND current_booking_id IS NULL.
  A lost claim moves on to the next candidate; no candidate left means Waiting (the caller polls).
- lifts.current_booking_id is UNIQUE, so two concurrent assigns for one booking cannot both hold lifts.
Status overrides and sensor updates are admin/hardware inputs and always succeed for a known lift.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parkhub.core.constants import (
    ACTIVE_BOOKING_STATUSES,
    LIFT_AVAILABLE,
    LIFT_DEFAULT_FLOOR,
    LIFT_OCCUPIED,
    LIFT_STATUSES,
    MAX_CLAIM_ATTEMPTS,
)
from parkhub.core.errors import Conflict, InvalidArgument, InvalidState, NotFound
from parkhub.core.timeutil import iso, utcnow
from parkhub.db.insert import insert_ignore_conflicts
from parkhub.models.booking import Booking
from parkhub.models.lift import Lift
from parkhub.models.parking_lot import ParkingLot

logger = logging.getLogger(__name__)


@dataclass
class LiftAssignment:
    assigned: bool
    lift: Lift | None
    message: str

    @property
    def wait_status(self) -> bool:
        return not self.assigned

    def to_dict(self) -> dict:
        return {
            "assigned": self.assigned,
            "wait_status": self.wait_status,
            "message": self.message,
            "lift": lift_to_dict(self.lift) if self.lift is not None else None,
        }


def lift_id_for(block_code: str, lift_number: int) -> str:
    return f"{block_code}-LIFT-{lift_number}"


def get_lift(db: Session, lift_id: str) -> Lift:
    lift = db.get(Lift, lift_id)
    if lift is None:
        raise NotFound("Lift not found", lift_id=lift_id)
    return lift


def _get_booking(db: Session, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found", booking_id=booking_id)
    return booking


def list_lifts(db: Session) -> list[Lift]:
    return db.query(Lift).order_by(Lift.block_code.asc(), Lift.lift_number.asc()).all()


def lifts_for_block(db: Session, block_code: str) -> list[Lift]:
    code = (block_code or "").strip().upper()
    rows = db.query(Lift).filter(Lift.block_code == code).order_by(Lift.lift_number.asc()).all()
    if not rows:
        raise NotFound("No lifts found for this block", block_code=code)
    return rows


def _claim_lift(db: Session, lift_id: str, booking_id: str, vehicle_number: str) -> bool:
    """CAS available -> occupied, linking the booking. True if this call won the lift."""
    now = utcnow()
    result = db.execute(
        update(Lift)
        .where(Lift.id == lift_id, Lift.status == LIFT_AVAILABLE, Lift.current_booking_id.is_(None))
        .values(
            status=LIFT_OCCUPIED,
            current_booking_id=booking_id,
            current_vehicle_number=vehicle_number,
            assigned_at=now,
            last_activity=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _release_values(now) -> dict:
    return {
        "status": LIFT_AVAILABLE,
        "current_booking_id": None,
        "current_vehicle_number": None,
        "released_at": now,
        "last_activity": now,
        "sensor_status": False,
    }


def _held_lift(db: Session, booking: Booking) -> Lift | None:
    """The lift this booking holds right now, if any."""
    if not booking.assigned_lift_id:
        return None
    lift = db.get(Lift, booking.assigned_lift_id)
    if lift is not None and lift.current_booking_id == booking.id:
        return lift
    return None


def assign_lift(db: Session, booking_id: str, block_code: str | None = None, vehicle_number: str | None = None) -> LiftAssignment:
    """
    Assign the least recently used Available lift in the block to the booking, or return Waiting.
    Idempotent: a booking that already holds a lift gets that lift back.
    """
    booking = _get_booking(db, booking_id)
    held = _held_lift(db, booking)
    if held is not None:
        return LiftAssignment(True, held, "Lift already assigned")
    if booking.status not in ACTIVE_BOOKING_STATUSES:
        raise InvalidState(f"Cannot assign a lift to a {booking.status} booking", booking_id=booking.id)

    code = (block_code or booking.block_code).strip().upper()
    if code != booking.block_code:
        raise InvalidArgument("Booking is for a different block", booking_block=booking.block_code, block_code=code)
    vehicle = (vehicle_number or booking.vehicle_number).strip().upper()
    previous_lift_id = booking.assigned_lift_id

    tried: set[str] = set()
    try:
        for _ in range(MAX_CLAIM_ATTEMPTS):
            q = db.query(Lift.id).filter(
                Lift.block_code == code,
                Lift.status == LIFT_AVAILABLE,
                Lift.current_booking_id.is_(None),
            )
            if tried:
                q = q.filter(Lift.id.notin_(tried))
            candidate = q.order_by(Lift.last_activity.asc(), Lift.lift_number.asc()).first()
            if candidate is None:
                break
            lift_id = candidate[0]
            if not _claim_lift(db, lift_id, booking.id, vehicle):
                logger.debug("Lift %s: lost claim race, trying next", lift_id)
                tried.add(lift_id)
                continue
            now = utcnow()
            cond = Booking.assigned_lift_id.is_(None) if previous_lift_id is None else Booking.assigned_lift_id == previous_lift_id
            linked = db.execute(
                update(Booking)
                .where(Booking.id == booking.id, cond)
                .values(assigned_lift_id=lift_id, lift_assigned_at=now, lift_released_at=None)
                .execution_options(synchronize_session=False)
            )
            if linked.rowcount != 1:
                raise Conflict("Booking was assigned a lift concurrently", booking_id=booking.id)
            db.commit()
            lift = db.get(Lift, lift_id)
            db.refresh(lift)
            db.refresh(booking)
            logger.info("Lift %s assigned to booking=%s vehicle=%s", lift_id, booking.id, vehicle)
            return LiftAssignment(True, lift, f"Lift {lift.lift_number} assigned successfully")
    except IntegrityError:
        # current_booking_id is unique: another request already gave this booking a lift
        db.rollback()
        db.expire_all()
        held = _held_lift(db, _get_booking(db, booking_id))
        if held is not None:
            return LiftAssignment(True, held, "Lift already assigned")
        raise Conflict("Concurrent lift claim lost", booking_id=booking_id)
    except Conflict:
        db.rollback()
        raise

    db.rollback()
    logger.info("Block %s: no lift available for booking=%s (waiting)", code, booking.id)
    return LiftAssignment(False, None, "All lifts occupied. Please wait...")


def release_lift_for_booking(db: Session, booking: Booking) -> bool:
    """Release the lift held by booking (if still held). Flushes, does not commit."""
    if not booking.assigned_lift_id:
        return False
    now = utcnow()
    result = db.execute(
        update(Lift)
        .where(Lift.id == booking.assigned_lift_id, Lift.current_booking_id == booking.id)
        .values(**_release_values(now))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        booking.lift_released_at = now
        db.flush()
        logger.info("Lift %s released by booking=%s", booking.assigned_lift_id, booking.id)
        return True
    return False


def release_lift(db: Session, lift_id: str, booking_id: str | None = None) -> Lift:
    """
    Reset the lift to available and clear its booking.
    With booking_id the release only happens while the lift still holds that booking (InvalidState
    otherwise) and the booking's lift release time is stamped. Without it the release is
    unconditional (admin reset of a stuck lift).
    """
    lift = get_lift(db, lift_id)
    booking = _get_booking(db, booking_id) if booking_id else None
    now = utcnow()
    stmt = update(Lift).where(Lift.id == lift.id)
    if booking is not None:
        stmt = stmt.where(Lift.current_booking_id == booking.id)
    result = db.execute(stmt.values(**_release_values(now)).execution_options(synchronize_session=False))
    if booking is not None:
        if result.rowcount != 1:
            db.rollback()
            raise InvalidState("Lift is not held by this booking", lift_id=lift.id, booking_id=booking.id)
        booking.lift_released_at = now
    db.commit()
    db.refresh(lift)
    logger.info("Lift %s released (booking=%s)", lift.id, booking_id)
    return lift


def update_lift_status(db: Session, lift_id: str, status: str) -> Lift:
    """
    Admin/system override. Leaving 'occupied' drops the booking link so the lift is claimable again.

    Setting 'occupied' by hand is a manual hold: the lift is occupied with no current_booking_id.
    This is the one case where occupied and the booking link disagree; assign_lift never picks
    such a lift (it is not available) and release_lift without a booking id clears it.
    """
    new_status = (status or "").strip().lower()
    if new_status not in LIFT_STATUSES:
        raise InvalidArgument("Invalid status", status=status, valid_statuses=list(LIFT_STATUSES))
    lift = get_lift(db, lift_id)
    values = {"status": new_status, "last_activity": utcnow()}
    if new_status != LIFT_OCCUPIED:
        values["current_booking_id"] = None
        values["current_vehicle_number"] = None
    db.execute(update(Lift).where(Lift.id == lift.id).values(**values).execution_options(synchronize_session=False))
    db.commit()
    db.refresh(lift)
    logger.info("Lift %s status -> %s", lift.id, new_status)
    return lift


def update_lift_sensor(db: Session, lift_id: str, present: bool, floor: str | None = None) -> Lift:
    """Hardware input: car presence and current floor. Never changes allocation status."""
    lift = get_lift(db, lift_id)
    lift.sensor_status = bool(present)
    if floor:
        lift.floor = str(floor).strip()[:16]
    lift.last_activity = utcnow()
    db.commit()
    db.refresh(lift)
    return lift


def initialize_lifts(db: Session, lifts_per_block: int) -> list[Lift]:
    """Ensure lifts 1..lifts_per_block exist for every lot (block). Idempotent."""
    now = utcnow()
    rows = [
        {
            "id": lift_id_for(lot.block_code, n),
            "lot_id": lot.id,
            "block_code": lot.block_code,
            "lift_number": n,
            "status": LIFT_AVAILABLE,
            "sensor_status": False,
            "floor": LIFT_DEFAULT_FLOOR,
            "last_activity": now,
        }
        for lot in db.query(ParkingLot).order_by(ParkingLot.block_code.asc()).all()
        for n in range(1, lifts_per_block + 1)
    ]
    insert_ignore_conflicts(db, Lift, rows, ["id"])
    db.commit()
    lifts = list_lifts(db)
    logger.info("Lifts initialized: %s total", len(lifts))
    return lifts


def reset_lifts(db: Session) -> list[Lift]:
    """Admin/testing: every lift back to available on the ground floor."""
    now = utcnow()
    values = _release_values(now)
    values.update({"assigned_at": None, "released_at": None, "floor": LIFT_DEFAULT_FLOOR})
    n = db.execute(update(Lift).values(**values).execution_options(synchronize_session=False)).rowcount
    db.commit()
    db.expire_all()
    logger.warning("All lifts reset to available (%s lifts)", n)
    return list_lifts(db)


def lift_to_dict(lift: Lift) -> dict:
    return {
        "lift_id": lift.id,
        "block_id": lift.block_code,
        "lift_number": lift.lift_number,
        "status": lift.status,
        "current_booking_id": lift.current_booking_id,
        "current_vehicle_number": lift.current_vehicle_number,
        "assigned_at": iso(lift.assigned_at),
        "released_at": iso(lift.released_at),
        "sensor_status": lift.sensor_status,
        "floor": lift.floor,
        "last_activity": iso(lift.last_activity),
    }
