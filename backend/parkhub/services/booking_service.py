"""
Booking lifecycle: payment_pending -> paid -> parked -> completed, cancelled from any active state.

Every transition is a compare-and-set on bookings.status (UPDATE .. WHERE status IN (...)), so two
requests racing to complete or cancel the same booking cannot both succeed. The spot is claimed in
the same transaction as the booking row is created; one active booking per vehicle is enforced by
a partial unique index and reported as Conflict. Completion bills once and freezes the cost.
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parkhub.core.constants import (
    ACTIVE_BOOKING_STATUSES,
    BOOKING_CANCELLED,
    BOOKING_COMPLETED,
    BOOKING_PAID,
    BOOKING_PARKED,
    BOOKING_PAYMENT_PENDING,
    BOOKINGS_LIST_LIMIT,
    DEFAULT_FLOOR,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    VEHICLE_NUMBER_RE,
)
from parkhub.core.errors import Conflict, InvalidArgument, InvalidState, NotFound
from parkhub.core.timeutil import as_utc, iso, utcnow
from parkhub.models.booking import Booking
from parkhub.models.parking_lot import ParkingLot
from parkhub.models.parking_spot import ParkingSpot
from parkhub.services.allocation_service import allocate_spot, release_spot
from parkhub.services.billing import compute_charge, normalize_vehicle_type
from parkhub.services.lift_service import release_lift_for_booking

logger = logging.getLogger(__name__)


def normalize_vehicle_number(vehicle_number: str | None) -> str:
    """Upper-case, drop spaces and hyphens, then validate ('ka 01 ab-1234' -> 'KA01AB1234')."""
    raw = (vehicle_number or "").upper().replace(" ", "").replace("-", "")
    if not VEHICLE_NUMBER_RE.match(raw):
        raise InvalidArgument("Invalid vehicle number format", vehicle_number=vehicle_number)
    return raw


def create_booking_id() -> str:
    return "BK" + uuid.uuid4().hex[:16].upper()


def resolve_lot(db: Session, lot_ref: str) -> ParkingLot:
    """Find a lot by id or by block code (BLOCK-A)."""
    ref = (lot_ref or "").strip()
    lot = db.get(ParkingLot, ref) if ref else None
    if lot is None and ref:
        lot = db.query(ParkingLot).filter(ParkingLot.block_code == ref.upper()).first()
    if lot is None:
        raise NotFound("Parking lot / block not found", lot=lot_ref)
    return lot


def get_booking(db: Session, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found", booking_id=booking_id)
    return booking


def list_bookings(db: Session, limit: int = BOOKINGS_LIST_LIMIT) -> list[Booking]:
    return db.query(Booking).order_by(Booking.booking_time.desc()).limit(limit).all()


def list_active_for_user(db: Session, user_id: str) -> list[Booking]:
    return (
        db.query(Booking)
        .filter(Booking.user_id == user_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .order_by(Booking.booking_time.desc())
        .all()
    )


def list_for_user(db: Session, user_id: str, limit: int = BOOKINGS_LIST_LIMIT) -> list[Booking]:
    """Booking history for a user: every status, newest first."""
    return (
        db.query(Booking)
        .filter(Booking.user_id == user_id)
        .order_by(Booking.booking_time.desc(), Booking.created_at.desc())
        .limit(limit)
        .all()
    )


def _active_for_vehicle(db: Session, vehicle_number: str) -> Booking | None:
    return (
        db.query(Booking)
        .filter(Booking.vehicle_number == vehicle_number, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .first()
    )


def create_booking(
    db: Session,
    user_id: str,
    vehicle_number: str,
    lot_ref: str,
    vehicle_type: str | None = None,
    floor: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """
    Claim a spot in the lot/block and open a payment_pending booking for it.
    Raises InvalidArgument, NotFound, Conflict (vehicle already active) or NoCapacity.
    """
    if not (user_id or "").strip():
        raise InvalidArgument("user_id is required")
    vehicle = normalize_vehicle_number(vehicle_number)
    vtype = normalize_vehicle_type(vehicle_type)
    lot = resolve_lot(db, lot_ref)
    existing = _active_for_vehicle(db, vehicle)
    if existing is not None:
        raise Conflict("Vehicle already has an active booking", vehicle_number=vehicle, booking_id=existing.id)

    try:
        spot = allocate_spot(db, lot.id, vehicle)
        booking = Booking(
            id=create_booking_id(),
            user_id=user_id.strip(),
            vehicle_number=vehicle,
            vehicle_type=vtype,
            lot_id=lot.id,
            block_code=lot.block_code,
            spot_id=spot.id,
            slot_number=spot.label,
            floor=(floor or DEFAULT_FLOOR).strip(),
            status=BOOKING_PAYMENT_PENDING,
            payment_status=PAYMENT_PENDING,
            booking_time=as_utc(now) or utcnow(),
            parking_cost=0.0,
        )
        db.add(booking)
        db.commit()
    except IntegrityError:
        # partial unique index: a concurrent request booked this vehicle first; the spot claim rolls back too
        db.rollback()
        raise Conflict("Vehicle already has an active booking", vehicle_number=vehicle)
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    logger.info("Booking %s created: vehicle=%s block=%s slot=%s", booking.id, vehicle, lot.block_code, booking.slot_number)
    return booking


def _transition(db: Session, booking_id: str, from_statuses: tuple[str, ...], values: dict) -> bool:
    """CAS on status. True if the booking was in one of from_statuses and is now updated."""
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status.in_(from_statuses))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def mark_paid(db: Session, booking_id: str, transaction_id: str | None = None, now: datetime | None = None) -> Booking:
    """payment_pending -> paid; stamps entry time if not already set."""
    booking = get_booking(db, booking_id)
    ts = as_utc(now) or utcnow()
    values = {"status": BOOKING_PAID, "payment_status": PAYMENT_PAID, "entry_time": booking.entry_time or ts}
    if transaction_id:
        values["transaction_id"] = transaction_id
    if not _transition(db, booking.id, (BOOKING_PAYMENT_PENDING,), values):
        db.rollback()
        raise InvalidState(f"Cannot mark a {booking.status} booking as paid", booking_id=booking.id)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s paid (txn=%s)", booking.id, transaction_id)
    return booking


def mark_payment_failed(db: Session, booking_id: str) -> Booking:
    """Gateway reported a failed payment: the booking stays payment_pending and keeps its spot."""
    booking = get_booking(db, booking_id)
    if not _transition(db, booking.id, (BOOKING_PAYMENT_PENDING,), {"payment_status": PAYMENT_FAILED}):
        db.rollback()
        raise InvalidState(f"Cannot record a failed payment on a {booking.status} booking", booking_id=booking.id)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s payment failed", booking.id)
    return booking


def park(db: Session, booking_id: str, now: datetime | None = None) -> Booking:
    """paid -> parked."""
    booking = get_booking(db, booking_id)
    ts = as_utc(now) or utcnow()
    if not _transition(db, booking.id, (BOOKING_PAID,), {"status": BOOKING_PARKED, "entry_time": booking.entry_time or ts}):
        db.rollback()
        raise InvalidState(f"Cannot park a {booking.status} booking", booking_id=booking.id)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s parked", booking.id)
    return booking


def _release_resources(db: Session, booking: Booking) -> None:
    """Free the booking's spot and lift (in the caller's transaction)."""
    if booking.spot_id:
        spot = db.get(ParkingSpot, booking.spot_id)
        if spot is not None:
            release_spot(db, spot.id)
    release_lift_for_booking(db, booking)


def complete_booking(
    db: Session,
    booking_id: str,
    exit_time: datetime | None = None,
    vehicle_type: str | None = None,
) -> dict:
    """
    Vehicle exit: bill, move to completed, free spot and lift. Returns {cost, duration_hours, booking}.
    InvalidState if already completed/cancelled; InvalidArgument if exit is before entry.
    """
    booking = get_booking(db, booking_id)
    if booking.status not in ACTIVE_BOOKING_STATUSES:
        raise InvalidState(f"Booking already {booking.status}", booking_id=booking.id)
    vtype = normalize_vehicle_type(vehicle_type, default=booking.vehicle_type)
    entry = as_utc(booking.entry_time or booking.booking_time)
    exit_ = as_utc(exit_time) or utcnow()
    charge = compute_charge(entry, exit_, vtype)

    values = {
        "status": BOOKING_COMPLETED,
        "exit_time": exit_,
        "entry_time": entry,
        "parking_cost": float(charge.cost),
        "duration_hours": charge.duration_hours,
        "vehicle_type": vtype,
    }
    try:
        if not _transition(db, booking.id, ACTIVE_BOOKING_STATUSES, values):
            raise InvalidState("Booking already completed", booking_id=booking.id)
        db.refresh(booking)
        _release_resources(db, booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    logger.info(
        "Booking %s completed: vehicle=%s type=%s duration=%.2fh cost=%s",
        booking.id, booking.vehicle_number, vtype, charge.duration_hours, charge.cost,
    )
    return {"cost": charge.cost, "duration_hours": charge.duration_hours, "booking": booking}


def cancel_booking(db: Session, booking_id: str) -> Booking:
    """Any active state -> cancelled, no charge; frees spot and lift."""
    booking = get_booking(db, booking_id)
    try:
        if not _transition(db, booking.id, ACTIVE_BOOKING_STATUSES, {"status": BOOKING_CANCELLED, "parking_cost": 0.0}):
            raise InvalidState(f"Cannot cancel a {booking.status} booking", booking_id=booking.id)
        db.refresh(booking)
        _release_resources(db, booking)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    logger.info("Booking %s cancelled", booking.id)
    return booking


def booking_to_dict(booking: Booking) -> dict:
    return {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "vehicle_number": booking.vehicle_number,
        "vehicle_type": booking.vehicle_type,
        "lot_id": booking.lot_id,
        "block_id": booking.block_code,
        "spot_id": booking.spot_id,
        "slot_number": booking.slot_number,
        "floor": booking.floor,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "transaction_id": booking.transaction_id,
        "booking_time": iso(booking.booking_time),
        "entry_time": iso(booking.entry_time),
        "exit_time": iso(booking.exit_time),
        "parking_cost": booking.parking_cost,
        "duration_hours": booking.duration_hours,
        "assigned_lift": booking.assigned_lift_id,
        "lift_assigned_at": iso(booking.lift_assigned_at),
        "lift_released_at": iso(booking.lift_released_at),
    }
