from datetime import timedelta

import pytest

from parkhub.core.constants import (
    BOOKING_CANCELLED,
    BOOKING_COMPLETED,
    BOOKING_PAID,
    BOOKING_PARKED,
    BOOKING_PAYMENT_PENDING,
    LIFT_AVAILABLE,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    SPOT_AVAILABLE,
    SPOT_OCCUPIED,
)
from parkhub.core.errors import Conflict, InvalidArgument, InvalidState, NoCapacity, NotFound
from parkhub.models.parking_spot import ParkingSpot
from parkhub.services import booking_service
from parkhub.services.allocation_service import lot_availability
from parkhub.services.booking_service import (
    booking_to_dict,
    cancel_booking,
    complete_booking,
    create_booking,
    list_active_for_user,
    mark_paid,
    mark_payment_failed,
    normalize_vehicle_number,
    park,
    resolve_lot,
)
from parkhub.services.lift_service import assign_lift, get_lift
from tests.conftest import T0


def _book(db, vehicle="KA01AB1234", block="BLOCK-A", user="user-1", **kw):
    return create_booking(db, user_id=user, vehicle_number=vehicle, lot_ref=block, now=T0, **kw)


def _spot(db, booking):
    spot = db.get(ParkingSpot, booking.spot_id)
    db.refresh(spot)
    return spot


def test_normalize_vehicle_number():
    assert normalize_vehicle_number("ka 01 ab-1234") == "KA01AB1234"
    assert normalize_vehicle_number("dl1c1234") == "DL1C1234"
    for bad in ("", None, "1234", "KA01AB12345", "KAA1AB1234"):
        with pytest.raises(InvalidArgument):
            normalize_vehicle_number(bad)


def test_resolve_lot_by_code_or_id(db, site):
    lot = resolve_lot(db, "block-a")
    assert lot.block_code == "BLOCK-A"
    assert resolve_lot(db, lot.id).id == lot.id
    with pytest.raises(NotFound):
        resolve_lot(db, "BLOCK-Z")


def test_full_lifecycle(db, site):
    booking = _book(db)
    assert booking.status == BOOKING_PAYMENT_PENDING
    assert booking.slot_number == "A-1"
    assert booking.id.startswith("BK")
    assert _spot(db, booking).status == SPOT_OCCUPIED

    booking = mark_paid(db, booking.id, "txn-1", now=T0)
    assert booking.status == BOOKING_PAID
    assert booking.payment_status == PAYMENT_PAID
    assert booking.transaction_id == "txn-1"

    result = assign_lift(db, booking.id, "BLOCK-A", "KA01AB1234")
    assert result.assigned is True
    lift_id = result.lift.id

    booking = park(db, booking.id)
    assert booking.status == BOOKING_PARKED

    out = complete_booking(db, booking.id, exit_time=T0 + timedelta(minutes=90), vehicle_type="CAR")
    assert out["cost"] == 80
    assert out["duration_hours"] == 1.5
    booking = out["booking"]
    assert booking.status == BOOKING_COMPLETED
    assert booking.parking_cost == 80.0
    assert booking.lift_released_at is not None
    assert _spot(db, booking).status == SPOT_AVAILABLE
    lift = get_lift(db, lift_id)
    db.refresh(lift)
    assert lift.status == LIFT_AVAILABLE
    assert lift.current_booking_id is None


def test_second_active_booking_for_vehicle_conflicts(db, site):
    booking = _book(db)
    mark_paid(db, booking.id, now=T0)
    with pytest.raises(Conflict):
        _book(db, vehicle="ka01ab1234", block="BLOCK-B")
    a = lot_availability(db, resolve_lot(db, "BLOCK-B"))
    assert a["occupied"] == 0


def test_vehicle_can_book_again_after_completion(db, site):
    booking = _book(db)
    complete_booking(db, booking.id, exit_time=T0 + timedelta(minutes=30))
    again = _book(db)
    assert again.id != booking.id
    assert again.slot_number == "A-1"


def test_unique_index_backs_the_active_vehicle_check(db, site, monkeypatch):
    _book(db)
    lot = resolve_lot(db, "BLOCK-B")
    monkeypatch.setattr(booking_service, "_active_for_vehicle", lambda db, vehicle: None)
    with pytest.raises(Conflict):
        _book(db, block="BLOCK-B")
    # the spot claimed inside the failed transaction was rolled back
    assert lot_availability(db, lot)["occupied"] == 0


def test_block_full(db, site):
    for n in range(site.slots_per_block):
        _book(db, vehicle=f"KA01AB{1000 + n}")
    with pytest.raises(NoCapacity):
        _book(db, vehicle="KA01AB9999")


def test_invalid_vehicle_type(db, site):
    with pytest.raises(InvalidArgument):
        _book(db, vehicle_type="truck")


def test_user_id_required(db, site):
    with pytest.raises(InvalidArgument):
        _book(db, user="  ")


def test_mark_paid_twice(db, site):
    booking = _book(db)
    mark_paid(db, booking.id, now=T0)
    with pytest.raises(InvalidState):
        mark_paid(db, booking.id, now=T0)


def test_payment_failed_keeps_booking_pending(db, site):
    booking = mark_payment_failed(db, _book(db).id)
    assert booking.status == BOOKING_PAYMENT_PENDING
    assert booking.payment_status == PAYMENT_FAILED
    assert _spot(db, booking).status == SPOT_OCCUPIED
    assert mark_paid(db, booking.id, now=T0).status == BOOKING_PAID


def test_park_requires_payment(db, site):
    booking = _book(db)
    with pytest.raises(InvalidState):
        park(db, booking.id)


def test_complete_twice_keeps_the_first_cost(db, site):
    booking = _book(db)
    mark_paid(db, booking.id, now=T0)
    complete_booking(db, booking.id, exit_time=T0 + timedelta(hours=2, minutes=15))
    with pytest.raises(InvalidState):
        complete_booking(db, booking.id, exit_time=T0 + timedelta(hours=5))
    db.refresh(booking)
    assert booking.parking_cost == 140.0


def test_complete_bike_tariff(db, site):
    booking = _book(db, vehicle_type="bike")
    mark_paid(db, booking.id, now=T0)
    out = complete_booking(db, booking.id, exit_time=T0 + timedelta(hours=2))
    assert out["cost"] == 55
    assert out["booking"].vehicle_type == "BIKE"


def test_complete_before_entry_is_rejected(db, site):
    booking = _book(db)
    mark_paid(db, booking.id, now=T0)
    with pytest.raises(InvalidArgument):
        complete_booking(db, booking.id, exit_time=T0 - timedelta(minutes=1))
    db.refresh(booking)
    assert booking.status == BOOKING_PAID
    assert _spot(db, booking).status == SPOT_OCCUPIED


def test_cancel_frees_spot_and_lift(db, site):
    booking = _book(db)
    mark_paid(db, booking.id, now=T0)
    lift_id = assign_lift(db, booking.id).lift.id
    booking = cancel_booking(db, booking.id)
    assert booking.status == BOOKING_CANCELLED
    assert booking.parking_cost == 0.0
    assert _spot(db, booking).status == SPOT_AVAILABLE
    lift = get_lift(db, lift_id)
    db.refresh(lift)
    assert lift.current_booking_id is None


def test_cancel_completed_booking(db, site):
    booking = _book(db)
    complete_booking(db, booking.id, exit_time=T0 + timedelta(minutes=10))
    with pytest.raises(InvalidState):
        cancel_booking(db, booking.id)


def test_unknown_booking(db, site):
    with pytest.raises(NotFound):
        mark_paid(db, "BKMISSING")


def test_active_bookings_for_user(db, site):
    first = _book(db)
    _book(db, vehicle="KA02CD5678", user="user-2")
    second = _book(db, vehicle="KA03EF0001")
    cancel_booking(db, second.id)
    assert [b.id for b in list_active_for_user(db, "user-1")] == [first.id]


def test_booking_to_dict(db, site):
    d = booking_to_dict(_book(db))
    assert d["block_id"] == "BLOCK-A"
    assert d["vehicle_number"] == "KA01AB1234"
    assert d["assigned_lift"] is None
    assert d["booking_time"].startswith("2026-03-01T09:00:00")
