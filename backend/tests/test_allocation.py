import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from parkhub.core.constants import SPOT_AVAILABLE, SPOT_OCCUPIED
from parkhub.core.errors import Conflict, InvalidArgument, InvalidState, NoCapacity, NotFound
from parkhub.db.insert import insert_ignore_conflicts
from parkhub.models.parking_lot import ParkingLot
from parkhub.models.parking_spot import ParkingSpot
from parkhub.services.allocation_service import (
    _claim_spot,
    allocate_spot,
    ensure_spots,
    lot_availability,
    release_spot,
    spot_label,
)
from parkhub.services import lot_service
from parkhub.services.lot_service import create_lot, delete_lot, release_orphan_spot, update_lot


@pytest.fixture
def lot(db):
    return create_lot(db, name="Downtown", capacity=3, price_per_hour=20.0)


def _spot_count(db, lot):
    return db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id).count()


def test_spot_label():
    assert spot_label(ParkingLot(name="downtown", block_code="DOWNTOWN"), 3) == "D-3"
    assert spot_label(ParkingLot(name="BLOCK-A", block_code="BLOCK-A"), 1) == "A-1"
    assert spot_label(ParkingLot(name="", block_code=""), 7) == "S-7"


def test_site_blocks_label_spots_apart(db, site):
    labels = {}
    for code in ("BLOCK-A", "BLOCK-B"):
        lot = db.query(ParkingLot).filter(ParkingLot.block_code == code).one()
        labels[code] = sorted(s.label for s in db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id))
    assert labels["BLOCK-A"][0] == "A-1"
    assert labels["BLOCK-B"][0] == "B-1"
    assert not set(labels["BLOCK-A"]) & set(labels["BLOCK-B"])


def test_create_lot_fills_spots(db, lot):
    assert lot.block_code == "DOWNTOWN"
    assert ensure_spots(db, lot) == [1, 2, 3]
    assert _spot_count(db, lot) == 3


def test_ensure_spots_is_idempotent(db, lot):
    ensure_spots(db, lot)
    ensure_spots(db, lot)
    db.commit()
    assert _spot_count(db, lot) == 3


def test_ensure_spots_fills_gaps(db, lot):
    db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id, ParkingSpot.spot_index == 2).delete()
    db.commit()
    assert ensure_spots(db, lot) == [1, 2, 3]
    db.commit()
    assert _spot_count(db, lot) == 3


def test_duplicate_fill_is_ignored(db, lot):
    # a racing filler that computed the same missing index
    row = {"id": "dup-spot", "lot_id": lot.id, "spot_index": 1, "status": SPOT_AVAILABLE, "label": "D-1", "version": 0}
    insert_ignore_conflicts(db, ParkingSpot, [row], ["lot_id", "spot_index"])
    db.commit()
    assert _spot_count(db, lot) == 3
    assert db.get(ParkingSpot, "dup-spot") is None


def test_allocate_takes_lowest_index(db, lot):
    first = allocate_spot(db, lot.id)
    second = allocate_spot(db, lot.id)
    db.commit()
    assert (first.spot_index, second.spot_index) == (1, 2)
    assert first.status == SPOT_OCCUPIED
    assert first.label == "D-1"


def test_allocate_reuses_released_spot(db, lot):
    first = allocate_spot(db, lot.id)
    allocate_spot(db, lot.id)
    release_spot(db, first.id)
    db.commit()
    assert allocate_spot(db, lot.id).spot_index == 1


def test_allocate_when_full(db, lot):
    for _ in range(3):
        allocate_spot(db, lot.id)
    db.commit()
    with pytest.raises(NoCapacity):
        allocate_spot(db, lot.id)


def test_allocate_zero_capacity(db):
    empty = create_lot(db, name="Empty", capacity=0, price_per_hour=0)
    with pytest.raises(NoCapacity):
        allocate_spot(db, empty.id)


def test_allocate_unknown_lot(db):
    with pytest.raises(NotFound):
        allocate_spot(db, "missing")


def test_stale_claim_loses(db, lot):
    spot = db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id, ParkingSpot.spot_index == 1).one()
    assert _claim_spot(db, spot.id) is True
    assert _claim_spot(db, spot.id) is False
    db.commit()
    # the next allocation skips the claimed spot
    assert allocate_spot(db, lot.id).spot_index == 2


def test_release_twice(db, lot):
    spot = allocate_spot(db, lot.id)
    db.commit()
    released = release_spot(db, spot.id)
    assert released.status == SPOT_AVAILABLE
    with pytest.raises(InvalidState):
        release_spot(db, spot.id)


def test_release_unknown_spot(db):
    with pytest.raises(NotFound):
        release_spot(db, "missing")


def test_availability_adds_up(db, lot):
    assert lot_availability(db, lot) == {"capacity": 3, "occupied": 0, "available": 3}
    spot = allocate_spot(db, lot.id)
    allocate_spot(db, lot.id)
    db.commit()
    assert lot_availability(db, lot) == {"capacity": 3, "occupied": 2, "available": 1}
    release_spot(db, spot.id)
    db.commit()
    a = lot_availability(db, lot)
    assert a["occupied"] + a["available"] == a["capacity"] == 3


def test_grow_capacity_adds_spots(db, lot):
    update_lot(db, lot.id, capacity=5)
    assert ensure_spots(db, lot) == [1, 2, 3, 4, 5]


def test_shrink_capacity_drops_free_spots(db, lot):
    update_lot(db, lot.id, capacity=1)
    assert _spot_count(db, lot) == 1
    assert lot_availability(db, lot)["capacity"] == 1


def test_shrink_below_occupied_is_refused(db, lot):
    for _ in range(3):
        allocate_spot(db, lot.id)
    db.commit()
    with pytest.raises(Conflict):
        update_lot(db, lot.id, capacity=1)
    assert _spot_count(db, lot) == 3
    assert lot_availability(db, lot) == {"capacity": 3, "occupied": 3, "available": 0}


def test_shrink_keeps_a_spot_claimed_by_another_session(db, session_factory, lot):
    # a second session claims the top spot after this one loaded the lot
    loaded = db.get(ParkingLot, lot.id)
    other = session_factory()
    try:
        top = other.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id, ParkingSpot.spot_index == 3).one()
        assert _claim_spot(other, top.id)
        other.commit()
        top_id = top.id
    finally:
        other.close()

    with pytest.raises(Conflict):
        update_lot(db, loaded.id, capacity=1)
    spot = db.get(ParkingSpot, top_id)
    db.refresh(spot)
    assert spot.status == SPOT_OCCUPIED
    assert _spot_count(db, lot) == 3


def test_rename_relabels_spots(db, lot):
    update_lot(db, lot.id, name="Airport")
    labels = sorted(s.label for s in db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id))
    assert labels == ["A-1", "A-2", "A-3"]


def test_duplicate_block_code(db, lot):
    with pytest.raises(Conflict):
        create_lot(db, name="downtown", capacity=1, price_per_hour=1)


def test_release_orphan_spot(db, lot):
    spot = allocate_spot(db, lot.id)
    db.commit()
    assert release_orphan_spot(db, spot.id).status == SPOT_AVAILABLE


def test_delete_lot(db, lot):
    lot_id = lot.id
    delete_lot(db, lot_id)
    assert db.get(ParkingLot, lot_id) is None
    assert db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot_id).count() == 0


def test_long_name_needs_a_short_block_code(db):
    name = "Phoenix Marketcity Multilevel Parking Tower"
    with pytest.raises(InvalidArgument):
        create_lot(db, name=name, capacity=1, price_per_hour=10)
    lot = create_lot(db, name=name, capacity=1, price_per_hour=10, block_code="phoenix")
    assert lot.block_code == "PHOENIX"
    assert lot.name == name


def test_block_code_taken_concurrently(db, lot, monkeypatch):
    # the up-front lookup misses a lot another request just created; the unique index decides
    monkeypatch.setattr(lot_service, "_lot_with_code", lambda db, code: None)
    with pytest.raises(Conflict):
        create_lot(db, name="Downtown", capacity=2, price_per_hour=5)
    assert db.query(ParkingLot).filter(ParkingLot.block_code == "DOWNTOWN").count() == 1
    assert _spot_count(db, lot) == 3


def test_concurrent_fills_make_one_row_per_index(db, session_factory, lot):
    db.query(ParkingSpot).filter(ParkingSpot.lot_id == lot.id).delete()
    db.commit()
    lot_id = lot.id
    workers = 4
    barrier = threading.Barrier(workers)

    def fill():
        session = session_factory()
        try:
            own_lot = session.get(ParkingLot, lot_id)
            barrier.wait()
            indices = ensure_spots(session, own_lot)
            session.commit()
            return indices
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = [f.result() for f in [pool.submit(fill) for _ in range(workers)]]

    assert all(r == [1, 2, 3] for r in results)
    indices = sorted(i for (i,) in db.query(ParkingSpot.spot_index).filter(ParkingSpot.lot_id == lot_id))
    assert indices == [1, 2, 3]
